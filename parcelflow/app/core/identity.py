"""
Identity token verification.

Customers, riders and admins sign in with the external identity provider
(Firebase Authentication) and present its ID token as a Bearer token. This
module verifies the token signature against the provider's published keys
and returns the decoded claims.
"""

import base64
import json
import time
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import httpx
from jose import JWTError, jwt

from parcelflow.app.core.config import settings
from parcelflow.app.core.exceptions import AuthError, ExternalServiceError
from parcelflow.app.models.enums import UserRole

logger = logging.getLogger(__name__)

FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"


def decode_service_key(encoded: Optional[str]) -> Dict[str, Any]:
    """
    Decode the base64-encoded service account JSON.

    Returns an empty dict when nothing is configured.
    """
    if not encoded:
        return {}
    try:
        return json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise ExternalServiceError("identity-provider", f"invalid service key: {exc}") from exc


class FirebaseTokenVerifier:
    """
    Verifies Firebase ID tokens (RS256) with a cached JWK set.

    Args:
        project_id: Firebase project id, used as audience and issuer suffix
        jwks_url: URL of the provider's JWK set
        timeout: Per-request timeout for fetching keys, in seconds
        cache_seconds: How long fetched keys are reused
    """

    def __init__(
        self,
        project_id: Optional[str],
        jwks_url: str,
        timeout: float = 5.0,
        cache_seconds: int = 3600,
    ):
        self.project_id = project_id
        self.jwks_url = jwks_url
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self._jwks: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0

    @classmethod
    def from_settings(cls) -> "FirebaseTokenVerifier":
        service_key = decode_service_key(settings.firebase_service_key)
        return cls(
            project_id=service_key.get("project_id"),
            jwks_url=settings.firebase_jwks_url,
            timeout=settings.identity_timeout_seconds,
        )

    async def _signing_keys(self) -> Dict[str, Any]:
        if self._jwks and time.time() - self._fetched_at < self.cache_seconds:
            return self._jwks

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.jwks_url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Fetching identity provider keys failed: %s", exc)
            raise ExternalServiceError("identity-provider", "could not fetch signing keys") from exc

        self._jwks = response.json()
        self._fetched_at = time.time()
        return self._jwks

    async def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify an ID token and return its claims.

        Raises:
            AuthError: token is malformed, expired, or signed by someone else
            ExternalServiceError: provider is not configured or unreachable
        """
        if not self.project_id:
            raise ExternalServiceError("identity-provider", "service key is not configured")

        jwks = await self._signing_keys()
        try:
            claims = jwt.decode(
                token,
                jwks,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=f"{FIREBASE_ISSUER_PREFIX}{self.project_id}",
            )
        except JWTError as exc:
            raise AuthError("unauthorized access") from exc

        if not claims.get("email"):
            raise AuthError("token carries no email")
        return claims


_verifier: Optional[FirebaseTokenVerifier] = None


def get_token_verifier() -> FirebaseTokenVerifier:
    """FastAPI dependency returning the process-wide verifier."""
    global _verifier
    if _verifier is None:
        _verifier = FirebaseTokenVerifier.from_settings()
    return _verifier


@dataclass
class CallerContext:
    """Verified caller: the provider's email plus the platform role stored for it."""
    email: str
    role: UserRole = UserRole.USER
    user_id: Optional[int] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
