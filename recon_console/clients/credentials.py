"""Credential providers handed to the backend client at construction."""

from __future__ import annotations

from typing import Optional, Protocol

from recon_console.core.config import Settings


class CredentialProvider(Protocol):
    """Where the backend client reads and stores bearer tokens."""

    def get_token(self) -> Optional[str]: ...

    def get_refresh_token(self) -> Optional[str]: ...

    def set_token(self, token: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryCredentials:
    """Tokens held in process memory.

    Nothing here survives a restart, which mirrors how the console treats
    every piece of client state except the tokens themselves.
    """

    def __init__(
        self, token: Optional[str] = None, refresh_token: Optional[str] = None
    ) -> None:
        self._token = token
        self._refresh_token = refresh_token

    @classmethod
    def from_settings(cls, config: Settings) -> InMemoryCredentials:
        return cls(config.backend_token, config.backend_refresh_token)

    def get_token(self) -> Optional[str]:
        return self._token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
        self._refresh_token = None
