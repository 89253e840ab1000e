from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from core.config import (
    logger,
    AFFILIATE_JWT_SECRET,
    AFFILIATE_JWT_ISSUER,
    AFFILIATE_JWT_TTL_DAYS,
)


def issue_affiliate_token(affiliate_id: str, email: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": affiliate_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=AFFILIATE_JWT_TTL_DAYS),
        "iss": AFFILIATE_JWT_ISSUER,
    }
    return jwt.encode(payload, AFFILIATE_JWT_SECRET, algorithm="HS256")


def verify_affiliate_token(token: str) -> Optional[str]:
    try:
        decoded = jwt.decode(
            token,
            AFFILIATE_JWT_SECRET,
            algorithms=["HS256"],
            issuer=AFFILIATE_JWT_ISSUER,
        )
        return decoded.get("sub")
    except jwt.InvalidTokenError as ex:
        logger.warning(f"Token verification failed: {ex}")
        return None


def get_affiliate_id_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        return None
    return verify_affiliate_token(token)
