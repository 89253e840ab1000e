from typing import Optional

from fastapi import APIRouter, Request, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import get_affiliate_id_from_request, issue_affiliate_token
from core.config import logger
from core.database import get_db
from core.errors import AffiliateError, error_response
from utils.datastore import AffiliateStore
from utils.emailing import send_affiliate_welcome
from utils.identity import AuthStrategy, IdentityResolver
from utils.notifications import CollectingNotificationSink

router = APIRouter(prefix="/api/affiliates", tags=["affiliates"])


@router.get("/ping")
async def affiliates_ping(request: Request):
    """Quick check that the affiliates router is mounted and reachable."""
    client_ip = request.client.host if request.client else "?"
    logger.info(f"[affiliates.ping] from={client_ip}")
    return {"ok": True}


@router.get("/strategy")
async def affiliates_strategy():
    return {"strategy": AuthStrategy.from_config().value}


@router.post("/signup")
async def affiliates_signup(
    email: str = Body(..., embed=True),
    nomeCompleto: str = Body(..., embed=True),
    telefone: str = Body(..., embed=True),
    senha: Optional[str] = Body(None, embed=True),
    db: Session = Depends(get_db),
):
    sink = CollectingNotificationSink()
    resolver = IdentityResolver(AffiliateStore(db), notifier=sink)
    logger.info(f"[affiliates.signup] start email={email} strategy={resolver.strategy.value}")
    try:
        profile = resolver.create(email, nomeCompleto, telefone, senha)
    except AffiliateError as ex:
        logger.warning(f"[affiliates.signup] {ex.code} email={email}")
        return error_response(ex, sink.to_list())

    email_sent = send_affiliate_welcome(profile)
    return {
        "ok": True,
        "affiliate": profile,
        "token": issue_affiliate_token(profile["id"], profile["email"]),
        "emailSent": bool(email_sent),
        "notifications": sink.to_list(),
    }


@router.post("/login")
async def affiliates_login(
    codigoAfiliado: Optional[str] = Body(None, embed=True),
    email: Optional[str] = Body(None, embed=True),
    senha: Optional[str] = Body(None, embed=True),
    db: Session = Depends(get_db),
):
    sink = CollectingNotificationSink()
    resolver = IdentityResolver(AffiliateStore(db), notifier=sink)
    try:
        profile = resolver.authenticate(codigo_afiliado=codigoAfiliado, email=email, senha=senha)
    except AffiliateError as ex:
        logger.warning(f"[affiliates.login] {ex.code} strategy={resolver.strategy.value}")
        return error_response(ex, sink.to_list())

    logger.info(f"[affiliates.login] success id={profile['id']}")
    return {
        "ok": True,
        "affiliate": profile,
        "token": issue_affiliate_token(profile["id"], profile["email"]),
        "notifications": sink.to_list(),
    }


@router.get("/me")
async def affiliates_me(request: Request, db: Session = Depends(get_db)):
    affiliate_id = get_affiliate_id_from_request(request)
    if not affiliate_id:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    try:
        profile = AffiliateStore(db).get_profile(affiliate_id)
    except AffiliateError as ex:
        return error_response(ex)
    if not profile:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return {"ok": True, "affiliate": profile.to_dict()}
