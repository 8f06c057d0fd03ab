"""Access token verification for shoppers and store administrators.

Tokens are issued by Supabase Auth and signed with the project's ES256 key.
The same verification serves the Authorization header on REST requests and
the ``token`` query parameter on the notification socket.
"""

import json
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import UUID

import jwt
from jwt import PyJWK
from pydantic import ValidationError as PydanticValidationError

from src.core.config import get_settings
from src.schemas.auth import TokenPayload, UserContext

ALGORITHMS = ["ES256"]
REQUIRED_CLAIMS = ["exp", "iat", "sub"]


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a caller cannot be identified from their token."""

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# Checked in order; subclasses come before their bases.
_JWT_ERRORS: list[tuple[type[jwt.PyJWTError], AuthErrorCode, str]] = [
    (jwt.ExpiredSignatureError, AuthErrorCode.TOKEN_EXPIRED, "Token has expired"),
    (jwt.InvalidSignatureError, AuthErrorCode.INVALID_SIGNATURE, "Invalid token signature"),
    (jwt.InvalidAudienceError, AuthErrorCode.INVALID_TOKEN, "Token was not issued for this store"),
    (jwt.MissingRequiredClaimError, AuthErrorCode.INVALID_TOKEN, "Token missing required claim"),
    (jwt.DecodeError, AuthErrorCode.INVALID_TOKEN, "Invalid token format"),
]


def _translate(error: jwt.PyJWTError) -> AuthError:
    for error_type, code, message in _JWT_ERRORS:
        if isinstance(error, error_type):
            return AuthError(f"{message}: {error}" if code == AuthErrorCode.INVALID_TOKEN else message, code)
    return AuthError(f"Token validation failed: {error}", AuthErrorCode.INVALID_TOKEN)


@lru_cache
def get_signing_key() -> Any:
    """Load the ES256 public key from the SUPABASE_SIGNING_KEY_JWK setting.

    Raises:
        AuthError: If the JWK is missing, not JSON, or not an ES256 key.
    """
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
        return PyJWK.from_dict(jwk_data, algorithm=ALGORITHMS[0]).key
    except (json.JSONDecodeError, jwt.PyJWKError, jwt.InvalidKeyError) as e:
        raise AuthError(f"Invalid signing key JWK: {e}", AuthErrorCode.INVALID_TOKEN) from e


def decode_jwt(token: str) -> TokenPayload:
    """Verify a Supabase access token and return its claims.

    Checks the signature, expiry, issue time and audience.

    Raises:
        AuthError: If the token is invalid, expired, or has wrong signature.
    """
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            get_signing_key(),
            algorithms=ALGORITHMS,
            audience=get_settings().jwt_audience,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as e:
        raise _translate(e) from e

    try:
        return TokenPayload.model_validate(claims)
    except PydanticValidationError as e:
        raise AuthError("Token claims are malformed", AuthErrorCode.INVALID_TOKEN) from e


def authenticate(token: str) -> UserContext:
    """Identify the shopper or administrator a token belongs to.

    Raises:
        AuthError: If the token is invalid or its subject is not a user id.
    """
    payload = decode_jwt(token)
    try:
        UUID(payload.sub)
    except ValueError as e:
        raise AuthError("Token subject is not a user id", AuthErrorCode.INVALID_TOKEN) from e
    return payload.to_user_context()


def bearer_token(authorization: str) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        AuthError: UNAUTHORIZED if the header is empty or uses another scheme.
    """
    if not authorization:
        raise AuthError("Authorization header required", AuthErrorCode.UNAUTHORIZED)

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        raise AuthError(
            "Invalid authorization header format. Expected: Bearer <token>",
            AuthErrorCode.UNAUTHORIZED,
        )
    return token.strip()
