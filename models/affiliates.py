"""
Affiliate models
- afiliados_perfis: affiliate identity
- cadastros_afiliados: product-promotion registration owned by an affiliate
"""
from uuid import uuid4

from sqlalchemy import Column, String, Integer, DateTime, Text, JSON
from sqlalchemy.sql import func
from core.database import Base


def _new_id() -> str:
    return uuid4().hex


def _iso(value):
    return value.isoformat() if value else None


class AffiliateProfile(Base):
    __tablename__ = "afiliados_perfis"

    id = Column(String(64), primary_key=True, index=True, default=_new_id)

    # Identity
    email = Column(String(255), unique=True, index=True, nullable=False)
    nome_completo = Column(String(255), nullable=False)
    telefone = Column(String(64), nullable=False)
    senha = Column(String(255), nullable=True)  # bcrypt hash, password strategy only

    codigo_afiliado = Column(String(8), unique=True, index=True, nullable=False)

    # Aggregate counters
    total_cadastros = Column(Integer, default=0, nullable=False)

    ultimo_acesso = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "nome_completo": self.nome_completo,
            "telefone": self.telefone,
            "codigo_afiliado": self.codigo_afiliado,
            "total_cadastros": int(self.total_cadastros or 0),
            "ultimo_acesso": _iso(self.ultimo_acesso),
            "created_at": _iso(self.created_at),
        }


class Registration(Base):
    __tablename__ = "cadastros_afiliados"

    id = Column(String(64), primary_key=True, index=True, default=_new_id)

    # One registration per affiliate; see DESIGN.md
    afiliado_id = Column(String(64), unique=True, index=True, nullable=False)

    nome_agente = Column(String(255), nullable=False)
    whatsapp = Column(String(64), nullable=False)
    nome_produto = Column(String(255), nullable=False)
    link_pagina_vendas = Column(Text, nullable=False)
    descricao_produto = Column(Text, nullable=False)

    checkout_01 = Column(Text, nullable=False)
    checkout_02 = Column(Text, nullable=True)
    checkout_03 = Column(Text, nullable=True)
    checkout_04 = Column(Text, nullable=True)
    checkout_05 = Column(Text, nullable=True)
    link_instagram = Column(Text, nullable=True)

    # Public URLs of uploaded files, by value
    videos_depoimento = Column(JSON, nullable=False, default=list)
    imagens_produto = Column(JSON, nullable=False, default=list)
    imagens_prova_social = Column(JSON, nullable=False, default=list)
    documentos_complementares = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "afiliado_id": self.afiliado_id,
            "nome_agente": self.nome_agente,
            "whatsapp": self.whatsapp,
            "nome_produto": self.nome_produto,
            "link_pagina_vendas": self.link_pagina_vendas,
            "descricao_produto": self.descricao_produto,
            "checkout_01": self.checkout_01,
            "checkout_02": self.checkout_02,
            "checkout_03": self.checkout_03,
            "checkout_04": self.checkout_04,
            "checkout_05": self.checkout_05,
            "link_instagram": self.link_instagram,
            "videos_depoimento": list(self.videos_depoimento or []),
            "imagens_produto": list(self.imagens_produto or []),
            "imagens_prova_social": list(self.imagens_prova_social or []),
            "documentos_complementares": list(self.documentos_complementares or []),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
