"""
Credential lookup

The analysis service only needs ``get_credential(provider)``. Where the
credentials live is up to the implementation: settings/env vars by default,
with runtime overrides set through the API.
"""

from typing import Protocol

from threadly.core.config import Settings, get_settings

PLACEHOLDER_CREDENTIAL = "PLACEHOLDER_API_KEY"


class CredentialStore(Protocol):
    def get_credential(self, provider: str) -> str | None:
        """Return the credential configured for a provider, if any."""
        ...

    def set_credential(self, provider: str, credential: str | None) -> None:
        """Store (or with None, forget) a runtime credential."""
        ...


def is_usable_credential(credential: str | None) -> bool:
    return bool(credential and credential.strip() and credential.strip() != PLACEHOLDER_CREDENTIAL)


class SettingsCredentialStore:
    """Reads ``<PROVIDER>_API_KEY`` settings, overlaid by runtime credentials."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._overrides: dict[str, str] = {}

    def get_credential(self, provider: str) -> str | None:
        if provider in self._overrides:
            return self._overrides[provider]
        value = getattr(self._settings, f"{provider}_api_key", "")
        return value or None

    def set_credential(self, provider: str, credential: str | None) -> None:
        if credential:
            self._overrides[provider] = credential.strip()
        else:
            self._overrides.pop(provider, None)
