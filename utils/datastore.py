"""
Data store boundary for affiliate profiles and registrations.

Every public method is one atomic call against the database: it commits
on success, and on any SQLAlchemy failure it rolls back, logs and raises
BackendUnavailableError.
"""
import secrets
import string
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import logger
from core.errors import BackendUnavailableError
from models.affiliates import AffiliateProfile, Registration

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
CODE_MAX_ATTEMPTS = 20

PROFILE_LOOKUP_FIELDS = ("id", "email", "codigo_afiliado")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _atomic(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as ex:
            try:
                self.db.rollback()
            except SQLAlchemyError:
                pass
            logger.warning(f"[datastore.{fn.__name__}] {ex}")
            raise BackendUnavailableError(f"{fn.__name__} failed", cause=ex) from ex
    return wrapper


class AffiliateStore:
    def __init__(self, db: Session):
        self.db = db

    # ---- profiles ----

    @_atomic
    def get_profile(self, affiliate_id: str) -> Optional[AffiliateProfile]:
        return self.db.get(AffiliateProfile, affiliate_id)

    @_atomic
    def find_profile_by(self, field: str, value: Any) -> Optional[AffiliateProfile]:
        if field not in PROFILE_LOOKUP_FIELDS:
            raise ValueError(f"not a unique profile field: {field}")
        column = getattr(AffiliateProfile, field)
        return self.db.query(AffiliateProfile).filter(column == value).first()

    @_atomic
    def generate_unique_code(self) -> str:
        for _ in range(CODE_MAX_ATTEMPTS):
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            taken = self.db.query(AffiliateProfile.id).filter(AffiliateProfile.codigo_afiliado == code).first()
            if not taken:
                return code
        raise BackendUnavailableError("could not allocate a unique affiliate code")

    @_atomic
    def insert_profile(self, values: dict) -> AffiliateProfile:
        profile = AffiliateProfile(**values)
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    @_atomic
    def touch_last_access(self, affiliate_id: str) -> None:
        prof = self.db.get(AffiliateProfile, affiliate_id)
        if prof:
            prof.ultimo_acesso = _utcnow()
            self.db.commit()

    @_atomic
    def increment_total_cadastros(self, affiliate_id: str) -> None:
        prof = self.db.get(AffiliateProfile, affiliate_id)
        if prof:
            prof.total_cadastros = int(prof.total_cadastros or 0) + 1
            self.db.commit()

    # ---- registrations ----

    @_atomic
    def get_registration(self, registration_id: str) -> Optional[Registration]:
        return self.db.get(Registration, registration_id)

    @_atomic
    def find_registration_by_affiliate(self, affiliate_id: str) -> Optional[Registration]:
        return (
            self.db.query(Registration)
            .filter(Registration.afiliado_id == affiliate_id)
            .order_by(Registration.created_at.asc())
            .first()
        )

    @_atomic
    def insert_registration(self, values: dict) -> Registration:
        reg = Registration(**values)
        self.db.add(reg)
        self.db.commit()
        self.db.refresh(reg)
        return reg

    @_atomic
    def update_registration(self, registration_id: str, changes: dict) -> Registration:
        reg = self.db.get(Registration, registration_id)
        if reg is None:
            raise BackendUnavailableError(f"registration {registration_id} no longer exists")
        for column, value in changes.items():
            setattr(reg, column, value)
        self.db.commit()
        self.db.refresh(reg)
        return reg
