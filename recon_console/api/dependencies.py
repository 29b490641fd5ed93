"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException

from recon_console.clients.backend import ReconciliationApiClient
from recon_console.clients.credentials import InMemoryCredentials
from recon_console.core.config import settings
from recon_console.core.errors import AuthenticationError, BackendError
from recon_console.services.view_state.controller import ReconciliationViewController
from recon_console.services.view_state.registry import SessionRegistry

_client: Optional[ReconciliationApiClient] = None
_registry = SessionRegistry()


def get_client() -> ReconciliationApiClient:
    """Process-wide backend client (one cache shared by all sessions)."""
    global _client
    if _client is None:
        _client = ReconciliationApiClient.from_settings(
            settings, InMemoryCredentials.from_settings(settings)
        )
    return _client


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def get_registry() -> SessionRegistry:
    return _registry


def get_session_id(
    x_console_session: Optional[str] = Header(None, alias="X-Console-Session"),
) -> str:
    return x_console_session or settings.default_session_id


def get_controller(
    session_id: str = Depends(get_session_id),
    client: ReconciliationApiClient = Depends(get_client),
    registry: SessionRegistry = Depends(get_registry),
) -> ReconciliationViewController:
    return registry.get(session_id, lambda: ReconciliationViewController(client))


def backend_http_error(exc: BackendError) -> HTTPException:
    """Translate a backend failure into the response the caller sees."""
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=401, detail=str(exc))
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        return HTTPException(status_code=exc.status_code, detail=exc.detail or str(exc))
    return HTTPException(status_code=502, detail=str(exc))
