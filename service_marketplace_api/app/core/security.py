"""
Security helpers for password hashing and bearer tokens.

Passwords are hashed with PBKDF2‑HMAC‑SHA256 and a random salt per
password.  Tokens use a JWT-shaped format (``header.payload.signature``,
base64url encoded) signed with HMAC‑SHA256 and carry an ``exp``
claim.  The secret key comes from the application settings.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings


PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """HMAC‑SHA256 of ``message`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def _encode_segment(obj: Dict[str, object]) -> str:
    return _b64_url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


def _signing_input(header_b64: str, payload_b64: str) -> bytes:
    return f"{header_b64}.{payload_b64}".encode("utf-8")


def create_access_token(data: Dict[str, object], expires_delta: Optional[int] = None) -> str:
    """Create a signed token with the given claims.

    Parameters
    ----------
    data : dict
        Claims to embed in the token.  Login issues
        ``{"sub": <email>, "user_id": <id>}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        ``header.payload.signature``, each part base64url encoded.
    """
    claims = dict(data)
    claims["exp"] = int(time.time()) + (expires_delta or settings.access_token_expire_minutes * 60)
    header_b64 = _encode_segment({"alg": "HS256", "typ": "JWT"})
    payload_b64 = _encode_segment(claims)
    signature = _sign(_signing_input(header_b64, payload_b64), settings.secret_key)
    return f"{header_b64}.{payload_b64}.{_b64_url_encode(signature)}"


def decode_access_token(token: str) -> Optional[Dict[str, object]]:
    """Verify a token and return its claims.

    The signature is compared in constant time before the payload is
    parsed, and the ``exp`` claim must lie in the future.

    Parameters
    ----------
    token : str
        Token as issued by ``create_access_token``.

    Returns
    -------
    Optional[dict]
        The claims, or ``None`` if the token is malformed, forged or
        expired.
    """
    try:
        header_b64, payload_b64, signature_b64 = token.split(".")
        signature = _b64_url_decode(signature_b64)
        expected = _sign(_signing_input(header_b64, payload_b64), settings.secret_key)
        if not hmac.compare_digest(expected, signature):
            return None
        claims = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except ValueError:
        return None
    if claims.get("exp") is None or int(claims["exp"]) < int(time.time()):
        return None
    return claims


security = HTTPBearer(auto_error=False)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, object]:
    """Dependency that resolves the bearer token to its claims.

    Raises HTTP 401 if the header is missing or the token is invalid
    or expired.  The ``sub`` claim holds the user's email and
    ``user_id`` the user's primary key.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    Returns the salt and hash in hex, separated by ``$``.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored ``salt$hash`` string."""
    try:
        salt_hex, hash_hex = hashed_password.split("$", 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except (AttributeError, ValueError):
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)
