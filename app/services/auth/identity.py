"""
Identity provider: bearer-token verification yielding a stable user id.
Supports Firebase ID tokens (RS256, Google JWKS) or an HS256 shared secret.
"""
import logging

import jwt

from app.core.errors import AuthenticationError

logger = logging.getLogger("auth")


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid authorization header")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationError("Missing or invalid authorization header")
    return token


class IdentityVerifier:
    """Verifies identity tokens; the core trusts the returned user id as given."""

    def __init__(
        self,
        secret: str = "",
        jwks_url: str | None = None,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        issuer: str | None = None,
    ) -> None:
        self._secret = secret
        self._algorithms = ["HS256"] if secret else (algorithms or ["RS256"])
        self._audience = audience
        self._issuer = issuer
        self._jwks_client = jwt.PyJWKClient(jwks_url) if (jwks_url and not secret) else None

    def _signing_key(self, token: str):
        if self._secret:
            return self._secret
        if self._jwks_client is None:
            raise AuthenticationError("Identity provider is not configured")
        return self._jwks_client.get_signing_key_from_jwt(token).key

    def verify(self, token: str) -> str:
        """Returns the user id (sub claim) or raises AuthenticationError."""
        try:
            claims = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_aud": self._audience is not None, "require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            logger.warning("identity_token_rejected", extra={"error": type(e).__name__})
            raise AuthenticationError("Invalid authentication token") from e
        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid authentication token")
        return str(user_id)
