import smtplib
import uuid
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, MAIL_FROM, APP_NAME, FRONTEND_ORIGIN, TEMPLATES_DIR, logger

# Jinja env
_jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)


def smtp_configured() -> bool:
    return bool(SMTP_HOST and SMTP_PASS and MAIL_FROM)


def render_email(template_name: str, **context) -> str:
    base = {"app_name": APP_NAME}
    base.update(context or {})
    return _jinja_env.get_template(template_name).render(**base)


def send_email_smtp(
    to_addr: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    from_addr: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> bool:
    try:
        if not smtp_configured():
            logger.error("SMTP not configured; cannot send email")
            return False
        sender = (from_addr or MAIL_FROM).strip()
        display_from = f"{APP_NAME} <{sender}>" if "<" not in sender else sender
        domain = sender.split("@")[-1].rstrip(">") if "@" in sender else "localhost"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = display_from
        msg["To"] = to_addr
        msg["Message-ID"] = f"<{uuid.uuid4()}@{domain}>"
        msg["Date"] = datetime.utcnow().strftime("%a, %d %b %Y %H:%M:%S +0000")
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.attach(MIMEText(text or "Open this link in an HTML-capable email client.", "plain", _charset="utf-8"))
        msg.attach(MIMEText(html or "", "html", _charset="utf-8"))

        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            server.starttls()
            if SMTP_USER or SMTP_PASS:
                server.login(SMTP_USER, SMTP_PASS)
            server.sendmail(sender, [to_addr], msg.as_string())
        return True
    except Exception as ex:
        logger.exception(f"SMTP send failed: {ex}")
        return False


def send_affiliate_welcome(profile: dict) -> bool:
    """Send the affiliate their login code. Best-effort."""
    email = profile.get("email")
    if not email or not smtp_configured():
        return False
    code = profile.get("codigo_afiliado")
    intro = (
        f"Seu perfil de afiliado foi criado.<br>"
        f"Seu código de acesso é <b>{code}</b>. Guarde-o para futuros acessos!"
    )
    html = render_email(
        "email_basic.html",
        title="Bem-vindo, afiliado!",
        name=profile.get("nome_completo"),
        intro=intro,
        button_label="Continuar cadastro",
        button_url=FRONTEND_ORIGIN,
    )
    text = (
        f"Seu perfil de afiliado foi criado.\n\n"
        f"Seu código de acesso: {code}\n\n"
        f"Continue seu cadastro em {FRONTEND_ORIGIN}"
    )
    ok = send_email_smtp(email, f"{APP_NAME}: seu código de afiliado", html, text)
    if not ok:
        logger.error(f"[affiliates.signup] welcome-email-failed id={profile.get('id')} email={email}")
    return ok
