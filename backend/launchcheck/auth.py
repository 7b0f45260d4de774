"""
Launch Checklist Engine - Authentication
Shopify session tokens (HS256 JWT signed with the app secret) and the
current-shop dependency
"""
import base64
import hashlib
import hmac
import os
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models.db_models import ShopDB
from .services.shop_service import get_or_create_shop

# Configuration
SHOPIFY_API_KEY = os.getenv("SHOPIFY_API_KEY", "launchcheck-dev-key")
SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET", "launchcheck-dev-secret-change-in-production")
ALGORITHM = "HS256"
SESSION_TOKEN_EXPIRE_MINUTES = 1

# Bearer token security
security = HTTPBearer()


def create_session_token(shop_domain: str, expires_minutes: int = SESSION_TOKEN_EXPIRE_MINUTES) -> str:
    """Create a session token the way the admin host does (seed scripts and tests)."""
    now = datetime.utcnow()
    to_encode = {
        "iss": f"https://{shop_domain}/admin",
        "dest": f"https://{shop_domain}",
        "aud": SHOPIFY_API_KEY,
        "sub": "1",
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(to_encode, SHOPIFY_API_SECRET, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[dict]:
    """Decode and validate a session token. None if invalid or expired."""
    try:
        return jwt.decode(token, SHOPIFY_API_SECRET, algorithms=[ALGORITHM], audience=SHOPIFY_API_KEY)
    except JWTError:
        return None


def verify_webhook_hmac(body: bytes, hmac_header: Optional[str]) -> bool:
    """Check the X-Shopify-Hmac-Sha256 header (base64 HMAC-SHA256 of the raw body)."""
    if not hmac_header:
        return False
    digest = hmac.new(SHOPIFY_API_SECRET.encode("utf-8"), body, hashlib.sha256).digest()
    return hmac.compare_digest(base64.b64encode(digest).decode("ascii"), hmac_header)


def shop_domain_from_payload(payload: dict) -> Optional[str]:
    dest = payload.get("dest")
    if not dest:
        return None
    return urlparse(dest).netloc or None


async def get_current_shop(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> ShopDB:
    """
    Dependency to get the shop making the request.
    Unknown shops are onboarded on first request.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate session token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_session_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    shop_domain = shop_domain_from_payload(payload)
    if shop_domain is None:
        raise credentials_exception

    return get_or_create_shop(db, shop_domain)
