"""User, role, permission and auth proxies.

The console does not interpret these payloads; bodies are forwarded to
the backend and responses returned unchanged.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response

from recon_console.api.dependencies import backend_http_error, get_client
from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.errors import BackendError

router = APIRouter()


async def _proxy(call) -> Any:
    try:
        return await call
    except BackendError as exc:
        raise backend_http_error(exc)


def _required(body: dict[str, Any], key: str) -> Any:
    value = body.get(key)
    if value in (None, ""):
        raise HTTPException(status_code=400, detail=f"'{key}' is required")
    return value


# ── Users ────────────────────────────────────────────────────────────


@router.get("/users")
async def list_users(client: ReconciliationApiClient = Depends(get_client)) -> Any:
    return await _proxy(client.list_users())


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.update_user(user_id, body))


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str, client: ReconciliationApiClient = Depends(get_client)
) -> Any:
    return await _proxy(client.delete_user(user_id))


@router.post("/users/{user_id}/roles")
async def assign_roles(
    user_id: str,
    role_names: list[str] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.assign_roles(user_id, role_names))


@router.post("/users/invite")
async def invite_user(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.invite_user(body))


# ── Roles and permissions ────────────────────────────────────────────


@router.get("/roles")
async def list_roles(client: ReconciliationApiClient = Depends(get_client)) -> Any:
    return await _proxy(client.list_roles())


@router.post("/roles")
async def create_role(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.create_role(_required(body, "role")))


@router.put("/roles/{role_id}")
async def update_role(
    role_id: str,
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.update_role(role_id, _required(body, "role")))


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: str, client: ReconciliationApiClient = Depends(get_client)
) -> Any:
    return await _proxy(client.delete_role(role_id))


@router.post("/roles/{role_id}/permissions")
async def assign_permission(
    role_id: str,
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(
        client.assign_permission_to_role(role_id, _required(body, "name"))
    )


@router.get("/permissions")
async def list_permissions(
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.list_permissions())


@router.post("/permissions")
async def create_permission(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.create_permission(_required(body, "name")))


# ── Authentication ───────────────────────────────────────────────────


@router.post("/auth/login")
async def login(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    """Log in; the token is kept by the shared backend client."""
    return await _proxy(
        client.login(_required(body, "username"), _required(body, "password"))
    )


@router.post("/auth/register")
async def register(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    for key in ("username", "email", "password"):
        _required(body, key)
    return await _proxy(client.register(body))


@router.get("/auth/profile")
async def profile(client: ReconciliationApiClient = Depends(get_client)) -> Any:
    return await _proxy(client.get_profile())


@router.post("/auth/change-password")
async def change_password(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(
        client.change_password(
            _required(body, "username"),
            _required(body, "currentPassword"),
            _required(body, "newPassword"),
        )
    )


@router.get("/auth/verify")
async def verify_email(
    token: str = Query(...), client: ReconciliationApiClient = Depends(get_client)
) -> Any:
    return await _proxy(client.verify_email(token))


@router.get("/auth/activate")
async def activate_user(
    token: str = Query(...), client: ReconciliationApiClient = Depends(get_client)
) -> Any:
    return await _proxy(client.activate_user(token))


@router.post("/auth/resend-verification")
async def resend_verification(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.resend_verification(_required(body, "email")))


@router.post("/auth/reset-password")
async def reset_password(
    body: dict[str, Any] = Body(...),
    client: ReconciliationApiClient = Depends(get_client),
) -> Any:
    return await _proxy(client.reset_password(_required(body, "email")))


@router.post("/auth/logout", status_code=204)
def logout(client: ReconciliationApiClient = Depends(get_client)) -> Response:
    client.credentials.clear()
    return Response(status_code=204)
