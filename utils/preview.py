"""Read-only summary of a finalized registration."""
import re
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import TEMPLATES_DIR, APP_NAME
from utils.uploads import UPLOAD_CATEGORIES

_jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)

_WHATSAPP_RE = re.compile(r"(\d{2})(\d{5})(\d{4})")


def format_whatsapp(numero: str) -> str:
    """``(DD) DDDDD-DDDD`` for exactly 11 digits; anything else is returned as is."""
    match = _WHATSAPP_RE.fullmatch(numero or "")
    if not match:
        return numero or ""
    return "({}) {}-{}".format(*match.groups())


def build_preview(record: Mapping[str, Any]) -> dict:
    checkouts = [{"label": "Checkout Principal", "url": record.get("checkout_01")}]
    for n in range(2, 6):
        url = record.get(f"checkout_0{n}")
        if url:
            checkouts.append({"label": f"Checkout 0{n}", "url": url})

    files = []
    for category, (column, _, label) in UPLOAD_CATEGORIES.items():
        urls = list(record.get(column) or [])
        if urls:
            files.append({"category": category, "label": label, "count": len(urls), "urls": urls})

    return {
        "id": record.get("id"),
        "dados_pessoais": {
            "nome_agente": record.get("nome_agente"),
            "whatsapp": format_whatsapp(record.get("whatsapp") or ""),
        },
        "produto": {
            "nome_produto": record.get("nome_produto"),
            "link_pagina_vendas": record.get("link_pagina_vendas"),
            "descricao_produto": record.get("descricao_produto"),
        },
        "checkouts": checkouts,
        "instagram": record.get("link_instagram") or None,
        "arquivos": files,
    }


def render_preview_html(record: Mapping[str, Any]) -> str:
    return _jinja_env.get_template("preview.html").render(app_name=APP_NAME, preview=build_preview(record))
