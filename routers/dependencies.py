import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from core.config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_LEEWAY, SUPABASE_JWT_SECRET
from core.db import get_db
from core.users import create_profile, get_user_by_auth_id

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization token missing.")
    return auth_header.split(" ", 1)[1].strip()


def validate_access_token(token: str) -> dict:
    """Verify a Supabase access token (HS256) and return its claims."""
    if not SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not configured; rejecting token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication is not configured.")
    try:
        claims = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
            leeway=SUPABASE_JWT_LEEWAY,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired.")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid access token: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token.")

    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject.")
    return claims


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Validates the bearer token and returns the caller's profile, creating it on first sight.
    """
    claims = validate_access_token(_bearer_token(request))
    user = get_user_by_auth_id(db, auth_user_id=claims["sub"])
    if not user:
        metadata = claims.get("user_metadata") or {}
        user = create_profile(
            db,
            auth_user_id=claims["sub"],
            email=claims.get("email"),
            full_name=metadata.get("full_name") or metadata.get("name"),
            avatar_url=metadata.get("avatar_url"),
        )
        logger.info(f"Created profile {user.account_id} for auth user {claims['sub']}")
    return user
