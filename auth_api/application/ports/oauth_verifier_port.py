from __future__ import annotations

from typing import Any, Protocol

from auth_api.application.dto.auth import OAuthClaims
from auth_api.domain.entities.identity import OAuthProvider


class SigningKeyNotFoundError(LookupError):
    """The provider's key set holds no key for the requested ``kid``."""


class KeyResolverUnavailableError(RuntimeError):
    """The provider's key set could not be fetched."""


class OAuthVerifierPort(Protocol):
    def verify(self, *, id_token: str, provider: OAuthProvider) -> OAuthClaims:
        ...


class KeyResolverPort(Protocol):
    def get_signing_key(self, *, kid: str) -> Any:
        """Return the verification key for ``kid``.

        Raises ``SigningKeyNotFoundError`` for unknown ids and
        ``KeyResolverUnavailableError`` when the key set is unreachable.
        """
        ...
