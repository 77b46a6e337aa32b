import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _secret(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes.
    return password.encode()[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode())
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_token(payload: dict, expires_in: Optional[timedelta] = None) -> str:
    if expires_in is None:
        expires_in = timedelta(days=config.JWT_EXPIRE_DAYS)
    exp = datetime.now(timezone.utc) + expires_in
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def issue_token(user: dict) -> str:
    return create_token({"id": str(user["_id"]), "role": user.get("role", "user")})


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        config.TOKEN_COOKIE,
        token,
        httponly=True,
        max_age=config.JWT_EXPIRE_DAYS * 24 * 60 * 60,
        secure=config.is_production(),
        samesite="lax",
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(config.TOKEN_COOKIE)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """The cookie and the bearer header are accepted interchangeably."""
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(config.TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Principal from the verified token: ``{"id": ..., "role": ...}``."""
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    payload = decode_token(token)
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return {"id": user_id, "role": payload.get("role")}


def require_roles(*roles: str):
    """Dependency factory: pass only principals whose role is in ``roles``."""
    allowed = set(roles)

    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in allowed:
            logger.warning(
                "User %s with role %s denied; requires one of %s",
                user["id"],
                user.get("role"),
                sorted(allowed),
            )
            raise HTTPException(status_code=403, detail="Access denied: insufficient permissions")
        return user

    return checker
