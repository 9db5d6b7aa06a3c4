from typing import Any, Dict, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

SALT = 'interop'


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=SALT)


def sign_interop_token(secret_key: str, payload: Dict[str, Any]) -> str:
    return _serializer(secret_key).dumps(payload)


def verify_interop_token(secret_key: str, token: str, max_age: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """Decoded payload, or None when the token is forged or expired."""
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except (SignatureExpired, BadSignature):
        return None
    return payload if isinstance(payload, dict) else None
