"""
Form Validation Utilities
Statically declared schemas for the identification and registration forms.
Validators return (is_valid, error_message) tuples; nothing here raises.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

logger = logging.getLogger("afiliados")

Validator = Callable[[str], Tuple[bool, str]]


# ============================================================================
# FIELD VALIDATORS
# ============================================================================

def validate_email_format(email: str) -> Tuple[bool, str]:
    """Basic email format validation"""
    if not email:
        return False, "Insira um email válido"

    email = email.strip().lower()
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

    if not re.match(pattern, email):
        return False, "Insira um email válido"

    return True, ""


def validate_url(value: str) -> Tuple[bool, str]:
    try:
        parsed = urlparse((value or "").strip())
    except ValueError:
        return False, "Insira uma URL válida"
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False, "Insira uma URL válida"
    return True, ""


def min_length(n: int, message: str) -> Validator:
    def _check(value: str) -> Tuple[bool, str]:
        if len((value or "").strip()) < n:
            return False, message
        return True, ""
    return _check


def exact_length(n: int, message: str) -> Validator:
    def _check(value: str) -> Tuple[bool, str]:
        if len((value or "").strip()) != n:
            return False, message
        return True, ""
    return _check


# ============================================================================
# SCHEMA
# ============================================================================

@dataclass(frozen=True)
class FieldSpec:
    key: str                 # form key as sent by the client
    column: str              # storage column
    label: str
    validator: Validator
    required: bool = True


@dataclass
class FormValidation:
    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    cleaned: Dict[str, Optional[str]] = field(default_factory=dict)

    def error_for(self, key: str) -> Optional[str]:
        return self.errors.get(key)


def canonical_value(value: Any, required: bool = True) -> Optional[str]:
    """Trimmed string; an empty optional value becomes None."""
    text = "" if value is None else str(value).strip()
    if not text and not required:
        return None
    return text


def validate_form(fields: Tuple[FieldSpec, ...], data: Mapping[str, Any]) -> FormValidation:
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Optional[str]] = {}
    for spec in fields:
        value = canonical_value(data.get(spec.key), spec.required)
        cleaned[spec.key] = value
        if value is None:
            continue
        ok, msg = spec.validator(value)
        if not ok:
            errors[spec.key] = msg
    return FormValidation(valid=not errors, errors=errors, cleaned=cleaned)


REGISTRATION_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("nomeAgente", "nome_agente", "Nome do Agente",
              min_length(2, "Nome deve ter pelo menos 2 caracteres")),
    FieldSpec("whatsapp", "whatsapp", "WhatsApp Business",
              min_length(10, "WhatsApp deve ter pelo menos 10 dígitos")),
    FieldSpec("nomeProduto", "nome_produto", "Nome do Produto",
              min_length(2, "Nome do produto é obrigatório")),
    FieldSpec("linkPaginaVendas", "link_pagina_vendas", "Link da Página de Vendas", validate_url),
    FieldSpec("descricaoProduto", "descricao_produto", "Descrição do Produto",
              min_length(10, "Descrição deve ter pelo menos 10 caracteres")),
    FieldSpec("checkout01", "checkout_01", "Checkout 01", validate_url),
    FieldSpec("checkout02", "checkout_02", "Checkout 02", validate_url, required=False),
    FieldSpec("checkout03", "checkout_03", "Checkout 03", validate_url, required=False),
    FieldSpec("checkout04", "checkout_04", "Checkout 04", validate_url, required=False),
    FieldSpec("checkout05", "checkout_05", "Checkout 05", validate_url, required=False),
    FieldSpec("linkInstagram", "link_instagram", "Link do Instagram", validate_url, required=False),
)

SIGNUP_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("email", "email", "Email", validate_email_format),
    FieldSpec("nomeCompleto", "nome_completo", "Nome Completo",
              min_length(2, "Nome deve ter pelo menos 2 caracteres")),
    FieldSpec("telefone", "telefone", "Telefone",
              min_length(10, "Telefone deve ter pelo menos 10 dígitos")),
)

PASSWORD_FIELD = FieldSpec("senha", "senha", "Senha", min_length(6, "Senha deve ter pelo menos 6 caracteres"))

LOGIN_CODE_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("codigoAfiliado", "codigo_afiliado", "Código do Afiliado",
              exact_length(8, "Código deve ter 8 caracteres")),
)

LOGIN_PASSWORD_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("email", "email", "Email", validate_email_format),
    FieldSpec("senha", "senha", "Senha", min_length(1, "Senha é obrigatória")),
)


def validate_registration_form(data: Mapping[str, Any]) -> FormValidation:
    return validate_form(REGISTRATION_FIELDS, data)


def validate_signup_form(data: Mapping[str, Any], require_password: bool = False) -> FormValidation:
    fields = SIGNUP_FIELDS + ((PASSWORD_FIELD,) if require_password else ())
    return validate_form(fields, data)


def form_to_columns(fields: Tuple[FieldSpec, ...], cleaned: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
    return {spec.column: cleaned.get(spec.key) for spec in fields}


def columns_to_form(fields: Tuple[FieldSpec, ...], record: Mapping[str, Any]) -> Dict[str, str]:
    """Pre-populate a form from a stored record; None becomes an empty input."""
    return {spec.key: (record.get(spec.column) or "") for spec in fields}
