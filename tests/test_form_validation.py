import pytest

from utils.form_validation import (
    REGISTRATION_FIELDS,
    canonical_value,
    columns_to_form,
    form_to_columns,
    validate_email_format,
    validate_registration_form,
    validate_signup_form,
    validate_url,
)


@pytest.mark.parametrize("value,ok", [
    ("https://x.com", True),
    ("http://pay.com/1?a=b", True),
    ("x.com", False),
    ("ftp://x.com", False),
    ("https://", False),
    ("", False),
])
def test_validate_url(value, ok):
    assert validate_url(value)[0] is ok


def test_validate_email_format():
    assert validate_email_format("Ana@Exemplo.com")[0]
    assert not validate_email_format("ana@")[0]
    assert validate_email_format("")[1] == "Insira um email válido"


def test_canonical_value():
    assert canonical_value("  a  ") == "a"
    assert canonical_value("   ", required=False) is None
    assert canonical_value(None, required=True) == ""


def test_valid_registration_form(registration_form):
    result = validate_registration_form(registration_form)
    assert result.valid
    assert result.cleaned["checkout02"] is None
    assert result.cleaned["linkInstagram"] is None


def test_optional_fields_still_validated_when_present(registration_form):
    result = validate_registration_form(dict(registration_form, linkInstagram="instagram"))
    assert not result.valid
    assert list(result.errors) == ["linkInstagram"]


def test_required_field_errors_are_per_field():
    result = validate_registration_form({"nomeAgente": "A", "whatsapp": "123", "descricaoProduto": "curta"})
    assert not result.valid
    assert result.error_for("nomeAgente") == "Nome deve ter pelo menos 2 caracteres"
    assert result.error_for("whatsapp") == "WhatsApp deve ter pelo menos 10 dígitos"
    assert result.error_for("descricaoProduto") == "Descrição deve ter pelo menos 10 caracteres"
    assert {"nomeProduto", "linkPaginaVendas", "checkout01"} <= set(result.errors)
    assert "checkout02" not in result.errors


def test_signup_password_only_under_password_strategy():
    data = {"email": "a@b.com", "nomeCompleto": "Ana", "telefone": "11999999999"}
    assert validate_signup_form(data).valid
    assert "senha" in validate_signup_form(data, require_password=True).errors
    assert validate_signup_form(dict(data, senha="123456"), require_password=True).valid


def test_form_column_mapping(registration_form):
    cleaned = validate_registration_form(registration_form).cleaned
    columns = form_to_columns(REGISTRATION_FIELDS, cleaned)
    assert columns["link_pagina_vendas"] == "https://x.com"
    assert columns["checkout_05"] is None

    form = columns_to_form(REGISTRATION_FIELDS, columns)
    assert form["checkout05"] == ""
    assert form["nomeAgente"] == "Ana"
