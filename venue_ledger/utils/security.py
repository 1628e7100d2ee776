"""
Security and Authentication Utilities
"""

import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from dotenv import load_dotenv

load_dotenv()

# Configuration
JWT_SECRET = os.getenv("JWT_SECRET", "your-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24

CHAPA_WEBHOOK_SECRET = os.getenv("CHAPA_WEBHOOK_SECRET", "")


def create_jwt_token(email: str, role: str, expires_in_hours: int = JWT_EXPIRATION_HOURS) -> str:
    """Create JWT token carrying the caller identity"""
    payload = {
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=expires_in_hours),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token"""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def webhook_secret_configured() -> bool:
    return bool(CHAPA_WEBHOOK_SECRET)


def verify_chapa_signature(payload: bytes, signature: str) -> bool:
    """
    Verify Chapa webhook signature (HMAC-SHA256 of the raw body)
    """
    if not CHAPA_WEBHOOK_SECRET:
        raise ValueError("CHAPA_WEBHOOK_SECRET not configured")
    if not signature:
        return False

    hash_object = hmac.new(
        CHAPA_WEBHOOK_SECRET.encode("utf-8"), payload, hashlib.sha256
    )
    expected_signature = hash_object.hexdigest()

    return hmac.compare_digest(expected_signature, signature)

