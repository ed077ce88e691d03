# backend/soora/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from passlib.context import CryptContext
from jose import jwt

from soora.core.config import get_settings

# --- Password Hashing ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain-text password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)

# --- JWT (JSON Web Token) ---
# Secret and lifetime come from Settings (JWT_SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES)
ALGORITHM = "HS256"

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token. ``sub`` carries the user id as a string."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=ALGORITHM)

def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises jose.JWTError when the token is invalid or expired."""
    return jwt.decode(token, get_settings().jwt_secret_key, algorithms=[ALGORITHM])
