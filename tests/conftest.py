import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AFFILIATE_JWT_SECRET", "test-secret")
os.environ.setdefault("AFFILIATE_AUTH_STRATEGY", "code")

import pytest
from sqlalchemy.orm import sessionmaker

from core.database import Base, build_engine, init_db
from utils.datastore import AffiliateStore
from utils.notifications import CollectingNotificationSink
from tests.fakes import FakeStorage


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(db_session):
    return AffiliateStore(db_session)


@pytest.fixture
def sink():
    return CollectingNotificationSink(mirror_to_log=False)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def registration_form():
    return {
        "nomeAgente": "Ana",
        "whatsapp": "11999999999",
        "nomeProduto": "Curso X",
        "linkPaginaVendas": "https://x.com",
        "descricaoProduto": "desc longa o bastante",
        "checkout01": "https://pay.com/1",
        "checkout02": "",
        "checkout03": "",
        "checkout04": "",
        "checkout05": "",
        "linkInstagram": "",
    }
