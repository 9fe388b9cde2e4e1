"""
Identity provider contract.

Resolves a bearer token to a stable user id. Real deployments plug in
their identity service; the static provider serves configured tokens.
"""

from typing import Dict, Optional, Protocol

from ..core.errors import AuthError


BEARER_PREFIX = "Bearer "


class IdentityProvider(Protocol):
    def authenticate(self, token: str) -> str:
        """Return the user id for ``token`` or raise AuthError."""
        ...


class StaticTokenIdentityProvider:
    """Token table from configuration."""

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)

    def authenticate(self, token: str) -> str:
        user_id = self._tokens.get(token)
        if not user_id:
            raise AuthError("Invalid authentication")
        return user_id


def token_from_header(authorization: Optional[str]) -> str:
    """Extract the bearer token from an Authorization header value.

    Raises:
        AuthError: If the header is missing or empty
    """
    if not authorization:
        raise AuthError("No authorization header")
    token = authorization[len(BEARER_PREFIX):] if authorization.startswith(BEARER_PREFIX) else authorization
    token = token.strip()
    if not token:
        raise AuthError("Invalid authentication")
    return token
