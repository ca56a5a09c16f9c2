from __future__ import annotations

import logging

from auth_api.application.dto.auth import AuthTokensOutput, OAuthSignupInput
from auth_api.application.ports.background_port import BackgroundDispatcherPort
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.notification_port import EmailPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import (
    IdentityConflictError,
    ProfileIncompleteError,
    UnauthorizedError,
)
from auth_api.domain.services.identity_linking import (
    cross_provider_conflict_message,
    is_cross_provider_conflict,
    normalize_email,
)

from .auth_common import create_identity_with_profile, issue_tokens


logger = logging.getLogger(__name__)


class OAuthSignupUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        refresh_token_port: RefreshTokenPort,
        token_port: TokenPort,
        email_port: EmailPort | None,
        dispatcher: BackgroundDispatcherPort,
    ):
        self._identity_port = identity_port
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port
        self._email_port = email_port
        self._dispatcher = dispatcher

    def execute(self, command: OAuthSignupInput) -> tuple[AuthTokensOutput, bool]:
        """Returns the issued tokens and whether a new account was created."""
        email = normalize_email(command.email)
        assertion = self._token_port.decode_signup_assertion(token=command.signup_token)
        if (
            assertion.provider != command.provider
            or assertion.provider_id != command.provider_id
            or assertion.email != email
        ):
            logger.warning(
                "oauth_signup: assertion_mismatch provider=%s provider_id=%s",
                command.provider,
                command.provider_id,
            )
            raise UnauthorizedError("Signup token does not match the verified identity")

        identity = self._identity_port.get_identity(provider=command.provider, identifier=command.provider_id)
        if identity is not None:
            if self._identity_port.get_profile(auth_id=identity.id) is None:
                raise ProfileIncompleteError("User profile incomplete. Please contact support.")
            tokens = issue_tokens(
                auth_id=identity.id,
                refresh_token_port=self._refresh_token_port,
                token_port=self._token_port,
                device_info=command.device_info,
            )
            return tokens, False

        if email:
            owner = self._identity_port.get_identity_by_email(email=email)
            if is_cross_provider_conflict(owner, command.provider):
                raise IdentityConflictError(cross_provider_conflict_message(owner.provider))

        identity = create_identity_with_profile(
            identity_port=self._identity_port,
            dispatcher=self._dispatcher,
            provider=command.provider,
            identifier=command.provider_id,
            email=email,
            profile=command.profile,
        )
        logger.info("oauth_signup: created auth_id=%s provider=%s", identity.id, command.provider)

        tokens = issue_tokens(
            auth_id=identity.id,
            refresh_token_port=self._refresh_token_port,
            token_port=self._token_port,
            device_info=command.device_info,
        )
        if email and self._email_port is not None:
            self._dispatcher.fire_and_forget(
                "welcome_email",
                self._email_port.send_welcome_email,
                to=email,
                name=command.profile.name,
            )
        return tokens, True
