from __future__ import annotations

import logging

from auth_api.application.dto.auth import (
    AuthTokensOutput,
    OAuthSignInInput,
    PendingSignupOutput,
    SignupAssertion,
)
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.oauth_verifier_port import OAuthVerifierPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import IdentityConflictError, ProfileIncompleteError
from auth_api.domain.services.identity_linking import (
    cross_provider_conflict_message,
    is_cross_provider_conflict,
    normalize_email,
)

from .auth_common import issue_tokens, utcnow


logger = logging.getLogger(__name__)


class OAuthSignInUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        refresh_token_port: RefreshTokenPort,
        token_port: TokenPort,
        oauth_verifier: OAuthVerifierPort,
    ):
        self._identity_port = identity_port
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port
        self._oauth_verifier = oauth_verifier

    def execute(self, command: OAuthSignInInput) -> AuthTokensOutput | PendingSignupOutput:
        claims = self._oauth_verifier.verify(id_token=command.id_token, provider=command.provider)
        email = normalize_email(claims.email)

        identity = self._identity_port.get_identity(provider=command.provider, identifier=claims.subject)
        if identity is not None:
            if self._identity_port.get_profile(auth_id=identity.id) is None:
                raise ProfileIncompleteError("User profile incomplete. Please contact support.")
            if email and not identity.email:
                self._identity_port.update_identity_email(auth_id=identity.id, email=email)
            return issue_tokens(
                auth_id=identity.id,
                refresh_token_port=self._refresh_token_port,
                token_port=self._token_port,
                device_info=command.device_info,
            )

        if email:
            owner = self._identity_port.get_identity_by_email(email=email)
            if is_cross_provider_conflict(owner, command.provider):
                logger.info(
                    "oauth_sign_in: email_conflict provider=%s existing_provider=%s",
                    command.provider,
                    owner.provider,
                )
                raise IdentityConflictError(cross_provider_conflict_message(owner.provider))

        signup_token = self._token_port.create_signup_assertion(
            assertion=SignupAssertion(provider=command.provider, provider_id=claims.subject, email=email),
            now=utcnow(),
        )
        return PendingSignupOutput(
            provider=command.provider,
            provider_id=claims.subject,
            email=email,
            signup_token=signup_token,
        )
