from __future__ import annotations

from auth_api.domain.entities.identity import AuthIdentity


_PROVIDER_DISPLAY_NAMES = {
    "phone": "Phone",
    "google": "Google",
    "apple": "Apple",
}


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    normalized = email.strip().lower()
    return normalized or None


def provider_display_name(provider: str) -> str:
    return _PROVIDER_DISPLAY_NAMES.get(provider, provider[:1].upper() + provider[1:])


def indefinite_article(word: str) -> str:
    return "an" if word[:1].lower() in {"a", "e", "i", "o", "u"} else "a"


def is_cross_provider_conflict(existing: AuthIdentity | None, provider: str) -> bool:
    return existing is not None and existing.provider != provider


def cross_provider_conflict_message(existing_provider: str) -> str:
    name = provider_display_name(existing_provider)
    article = indefinite_article(existing_provider)
    return (
        f"This email is already associated with {article} {name} account. "
        f"Please sign in with {name} instead."
    )
