from datetime import datetime, timedelta, timezone
import hashlib

from passlib.context import CryptContext
from jose import jwt, JWTError

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def _bcrypt_input(password: str) -> str:
    """
    Bcrypt has a 72-byte input limit.
    Pre-hash with SHA-256 so the bcrypt input is always 64 ASCII chars.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()

def hash_password(password: str) -> str:
    return pwd_context.hash(_bcrypt_input(password))

def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(_bcrypt_input(password), password_hash)

def create_access_token(subject: str, role: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.jwt_access_ttl_min)
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()), # issued at
        "exp": int(exp.timestamp()), # expiration time
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict:
    # Raises JWTError if the signature or expiry is invalid
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])

__all__ = [
    "JWTError",
    "create_access_token",
    "decode_token",
    "hash_password",
    "verify_password",
]
