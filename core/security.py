"""
Security utilities: identity-provider token verification and app access tokens.

Users authenticate with the external identity provider, which hands them an
ID token. ``register``/``login`` verify that token once and exchange it for an
access token issued (and later verified) by this service.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientConnectionError, PyJWKClientError

from core.config import settings
from core.errors import AuthenticationError, ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityClaims:
    """Verified identity returned by the identity provider."""

    subject: str
    email: str
    email_verified: bool


class IdentityVerifier:
    """
    Verifies ID tokens issued by the identity provider.

    RS256 tokens are checked against the provider's JWKS endpoint; HS256
    tokens against a shared secret (useful for local setups and tests).
    """

    def __init__(
        self,
        algorithm: str = "RS256",
        jwks_url: Optional[str] = None,
        shared_secret: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.algorithm = algorithm
        self.shared_secret = shared_secret
        self.issuer = issuer
        self.audience = audience
        self._jwks_client = PyJWKClient(jwks_url) if jwks_url else None

        if algorithm == "RS256" and not self._jwks_client:
            logger.warning("RS256 identity verification configured without a JWKS URL")
        if algorithm == "HS256" and not shared_secret:
            logger.warning("HS256 identity verification configured without a shared secret")

    def _signing_key(self, token: str) -> Any:
        if self.algorithm == "HS256":
            if not self.shared_secret:
                raise ExternalServiceError("Identity provider is not configured")
            return self.shared_secret
        if not self._jwks_client:
            raise ExternalServiceError("Identity provider is not configured")
        try:
            return self._jwks_client.get_signing_key_from_jwt(token).key
        except PyJWKClientConnectionError as e:
            logger.error(f"Could not fetch identity provider keys: {e}")
            raise ExternalServiceError("Identity provider unavailable") from e
        except PyJWKClientError as e:
            raise AuthenticationError("Invalid identity token") from e

    def verify(self, id_token: str) -> IdentityClaims:
        """
        Verify an identity-provider ID token.

        Args:
            id_token: Bearer credential obtained from the identity provider

        Returns:
            IdentityClaims with subject id, email and verification flag

        Raises:
            AuthenticationError: token invalid, expired or missing claims
            ExternalServiceError: provider keys could not be fetched
        """
        if not id_token:
            raise AuthenticationError("Identity token is required")

        key = self._signing_key(id_token)
        options = {"require": ["exp", "sub"], "verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                id_token,
                key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Identity token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning(f"Identity token rejected: {type(e).__name__}")
            raise AuthenticationError("Invalid identity token") from e

        email = payload.get("email")
        if not email:
            raise AuthenticationError("Identity token has no email claim")

        return IdentityClaims(
            subject=str(payload["sub"]),
            email=email.lower(),
            email_verified=bool(payload.get("email_verified", False)),
        )


_identity_verifier: Optional[IdentityVerifier] = None


def get_identity_verifier() -> IdentityVerifier:
    """Get the process-wide verifier built from settings."""
    global _identity_verifier
    if _identity_verifier is None:
        _identity_verifier = IdentityVerifier(
            algorithm=settings.identity_algorithm,
            jwks_url=settings.identity_jwks_url,
            shared_secret=settings.identity_shared_secret,
            issuer=settings.identity_issuer,
            audience=settings.identity_audience,
        )
    return _identity_verifier


def verify_identity_token(id_token: str) -> IdentityClaims:
    return get_identity_verifier().verify(id_token)


# ==================== Access tokens ===================== #


def create_access_token(
    user_id: int,
    role: str,
    secret_key: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create an access token for an authenticated user.

    Args:
        user_id: User ID (stored as ``sub``)
        role: User role
        secret_key: Signing secret, defaults to JWT_SECRET_KEY
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    expires = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": expires,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(
        payload, secret_key or settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify an access token and return its payload.

    Raises:
        AuthenticationError: token invalid, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")
    return payload
