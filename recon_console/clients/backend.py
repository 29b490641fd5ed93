"""Async client for the reconciliation backend REST API.

Every backend call the console makes goes through ``ReconciliationApiClient``.
Queries are cached by query name and parameters; mutations invalidate the
tags they affect so the next query refetches:

    upload              -> Batches
    retry batch         -> Batch, Records, StatusCounts
    resolve record      -> Records, StatusCounts
    template mutations  -> Templates, Template
    user/role mutations -> Users, Roles, Permissions

Payloads are returned exactly as the backend sent them.  Turning them
into view models is the mapper's job, not the client's.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from recon_console.clients.cache import ResponseCache
from recon_console.clients.credentials import CredentialProvider
from recon_console.core.config import Settings
from recon_console.core.errors import (
    AuthenticationError,
    BackendError,
    ValidationError,
    invalid_id,
)
from recon_console.core.logging import get_logger

logger = get_logger(__name__)


def _require_int(value: Any, kind: str) -> int:
    """Ids must be real integers before a URL is built from them."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(invalid_id(kind, value))
    return value


class ReconciliationApiClient:
    """Typed query/mutation interface to the reconciliation backend.

    Args:
        base_url: Backend root, e.g. ``http://localhost:8080``.
        credentials: Supplies and stores bearer tokens.
        timeout: Transport timeout in seconds.
        transport: Optional httpx transport (tests pass a MockTransport).
        cache: Optional shared response cache.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.cache = cache if cache is not None else ResponseCache()
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        credentials: CredentialProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> ReconciliationApiClient:
        return cls(
            config.backend_base_url,
            credentials,
            timeout=config.backend_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ReconciliationApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Cache control
    # ------------------------------------------------------------------

    def invalidate(self, *tags: str) -> int:
        """Mark cached queries with any of ``tags`` as stale."""
        return self.cache.invalidate(*tags)

    # ------------------------------------------------------------------
    # Reconciliation batches and records
    # ------------------------------------------------------------------

    async def list_batches(self, force: bool = False) -> list[dict[str, Any]]:
        return await self._query(
            "batches", "/api/recon/batches", tags=("Batches",), force=force
        )

    async def get_batch(self, batch_id: int, force: bool = False) -> dict[str, Any]:
        batch_id = _require_int(batch_id, "batch")
        return await self._query(
            "batch",
            f"/api/recon/batches/{batch_id}",
            key_params={"id": batch_id},
            tags=("Batch",),
            force=force,
        )

    async def list_records(
        self,
        batch_id: int,
        status: Optional[str] = None,
        resolved: Optional[bool] = None,
        force: bool = False,
    ) -> list[dict[str, Any]]:
        batch_id = _require_int(batch_id, "batch")
        params: dict[str, Any] = {}
        if status:
            params["status"] = status
        if resolved is not None:
            params["resolved"] = "true" if resolved else "false"
        return await self._query(
            "records",
            f"/api/recon/batches/{batch_id}/records",
            params=params,
            key_params={"id": batch_id, **params},
            tags=("Records",),
            force=force,
        )

    async def get_status_counts(
        self, batch_id: int, force: bool = False
    ) -> dict[str, int]:
        batch_id = _require_int(batch_id, "batch")
        return await self._query(
            "status_counts",
            f"/api/recon/batches/{batch_id}/status-counts",
            key_params={"id": batch_id},
            tags=("StatusCounts",),
            force=force,
        )

    async def retry_batch(self, batch_id: int) -> None:
        batch_id = _require_int(batch_id, "batch")
        await self._request("POST", f"/api/recon/batches/{batch_id}/retry")
        self.invalidate("Batch", "Records", "StatusCounts")
        logger.info("Retry requested for batch %d", batch_id)

    async def resolve_record(
        self, record_id: int, comment: str, resolve: bool = True
    ) -> None:
        record_id = _require_int(record_id, "record")
        await self._request(
            "POST",
            f"/api/recon/records/{record_id}/resolve",
            json={"comment": comment, "resolve": resolve},
        )
        self.invalidate("Records", "StatusCounts")

    async def upload_reconciliation_batch(
        self,
        backoffice_file: tuple[str, bytes],
        vendor_file: tuple[str, bytes],
        backoffice_template_id: str,
        vendor_template_id: str,
    ) -> dict[str, Any]:
        """Submit both files and their templates; returns ``{"batchId": n}``."""
        result = await self._request(
            "POST",
            "/api/recon/upload",
            files={
                "backofficeFile": backoffice_file,
                "vendorFile": vendor_file,
            },
            data={
                "backofficeTemplateId": backoffice_template_id,
                "vendorTemplateId": vendor_template_id,
            },
        )
        self.invalidate("Batches")
        return result or {}

    async def download_report(self, batch_id: int) -> bytes:
        """Fetch the backend-generated summary workbook for a batch."""
        batch_id = _require_int(batch_id, "batch")
        response = await self._send(
            "GET",
            f"/api/reports/summary/{batch_id}",
            headers={"Accept": "application/octet-stream"},
        )
        return response.content

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def list_templates(self, force: bool = False) -> list[dict[str, Any]]:
        return await self._query(
            "templates", "/api/templates", tags=("Templates",), force=force
        )

    async def list_templates_by_type(
        self, template_type: str, force: bool = False
    ) -> list[dict[str, Any]]:
        template_type = template_type.upper()
        return await self._query(
            "templates_by_type",
            f"/api/templates/{template_type}",
            key_params={"type": template_type},
            tags=("Templates",),
            force=force,
        )

    async def get_template(self, template_id: str, force: bool = False) -> dict[str, Any]:
        return await self._query(
            "template",
            f"/api/templates/id/{template_id}",
            key_params={"id": template_id},
            tags=("Template",),
            force=force,
        )

    async def create_template(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("POST", "/api/templates", json=payload)
        self.invalidate("Templates", "Template")
        return result

    async def update_template(
        self, template_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        result = await self._request("PUT", f"/api/templates/{template_id}", json=payload)
        self.invalidate("Templates", "Template")
        return result

    async def delete_template(self, template_id: str) -> None:
        await self._request("DELETE", f"/api/templates/{template_id}")
        self.invalidate("Templates", "Template")

    # ------------------------------------------------------------------
    # Users, roles and permissions (payloads are passed through as-is)
    # ------------------------------------------------------------------

    async def list_users(self, force: bool = False) -> list[dict[str, Any]]:
        return await self._query(
            "users", "/api/admin/users", tags=("Users",), force=force
        )

    async def update_user(self, user_id: str, user_data: dict[str, Any]) -> Any:
        result = await self._request("PUT", f"/api/admin/users/{user_id}", json=user_data)
        self.invalidate("Users")
        return result

    async def delete_user(self, user_id: str) -> Any:
        result = await self._request("DELETE", f"/api/admin/users/{user_id}")
        self.invalidate("Users")
        return result

    async def assign_roles(self, user_id: str, role_names: list[str]) -> Any:
        result = await self._request(
            "POST", f"/api/admin/users/{user_id}/roles", json=role_names
        )
        self.invalidate("Users")
        return result

    async def invite_user(self, payload: dict[str, Any]) -> Any:
        result = await self._request("POST", "/api/auth/register", json=payload)
        self.invalidate("Users")
        return result

    async def list_roles(self, force: bool = False) -> list[dict[str, Any]]:
        return await self._query(
            "roles", "/api/admin/roles", tags=("Roles",), force=force
        )

    async def create_role(self, role: str) -> Any:
        result = await self._request("POST", "/api/admin/roles", json={"role": role})
        self.invalidate("Roles")
        return result

    async def update_role(self, role_id: str, role: str) -> Any:
        result = await self._request(
            "PUT", f"/api/admin/roles/{role_id}", json={"role": role}
        )
        self.invalidate("Roles", "Users")
        return result

    async def delete_role(self, role_id: str) -> Any:
        result = await self._request("DELETE", f"/api/admin/roles/{role_id}")
        self.invalidate("Roles", "Users")
        return result

    async def list_permissions(self, force: bool = False) -> list[dict[str, Any]]:
        return await self._query(
            "permissions",
            "/api/admin/permissions",
            tags=("Permissions",),
            force=force,
        )

    async def create_permission(self, name: str) -> Any:
        result = await self._request(
            "POST", "/api/admin/permissions", json={"name": name}
        )
        self.invalidate("Permissions")
        return result

    async def assign_permission_to_role(self, role_id: str, permission: str) -> Any:
        result = await self._request(
            "POST",
            f"/api/admin/roles/{role_id}/permissions",
            json={"name": permission},
        )
        self.invalidate("Roles", "Permissions")
        return result

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and keep the returned token for later requests."""
        result = await self._request(
            "POST",
            "/api/auth/login",
            json={"username": username, "password": password},
            retry_auth=False,
        )
        token = (result or {}).get("token")
        if token:
            self.credentials.set_token(token)
        return result

    async def register(self, payload: dict[str, Any]) -> Any:
        return await self._request(
            "POST", "/api/auth/register", json=payload, retry_auth=False
        )

    async def get_profile(self) -> dict[str, Any]:
        return await self._request("GET", "/api/auth/profile")

    async def change_password(
        self, username: str, current_password: str, new_password: str
    ) -> Any:
        return await self._request(
            "POST",
            "/api/auth/change-password",
            json={
                "username": username,
                "currentPassword": current_password,
                "newPassword": new_password,
            },
        )

    async def verify_email(self, token: str) -> Any:
        return await self._request(
            "GET", "/api/auth/verify", params={"token": token}, retry_auth=False
        )

    async def activate_user(self, token: str) -> Any:
        return await self._request(
            "GET", "/api/auth/activate", params={"token": token}, retry_auth=False
        )

    async def resend_verification(self, email: str) -> Any:
        return await self._request(
            "POST",
            "/api/auth/resend-verification",
            json={"email": email},
            retry_auth=False,
        )

    async def reset_password(self, email: str) -> Any:
        return await self._request(
            "POST", "/api/auth/reset-password", json={"email": email}, retry_auth=False
        )

    async def refresh_token(self) -> Optional[str]:
        """Trade the refresh token for a new access token.

        Returns the new token, or ``None`` when refreshing is impossible or
        rejected.
        """
        refresh = self.credentials.get_refresh_token()
        if not refresh:
            return None
        try:
            response = await self._http.post(
                "/api/auth/refresh",
                headers={"Authorization": f"Bearer {refresh}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Token refresh request failed: %s", exc)
            return None
        if response.status_code >= 400:
            logger.error("Token refresh failed: %d", response.status_code)
            return None
        try:
            token = response.json().get("token")
        except ValueError:
            logger.error("Token refresh returned a non-JSON body")
            return None
        if token:
            self.credentials.set_token(token)
        return token

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _query(
        self,
        query: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        key_params: Optional[dict[str, Any]] = None,
        tags: tuple[str, ...] = (),
        force: bool = False,
    ) -> Any:
        """GET with caching keyed by ``query`` and ``key_params``."""
        key = self.cache.make_key(query, key_params if key_params is not None else params)
        if not force:
            hit, value = self.cache.get(key)
            if hit:
                logger.debug("Cache hit for %s", key)
                return value
        value = await self._request("GET", path, params=params)
        self.cache.set(key, value, tags)
        return value

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            return response.json()
        return response.text

    async def _send(
        self,
        method: str,
        path: str,
        retry_auth: bool = True,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, refreshing the token once on a 401."""
        response = await self._raw_send(method, path, headers, **kwargs)

        if response.status_code == 401 and retry_auth:
            logger.warning("401 Unauthorized on %s %s, refreshing token", method, path)
            token = await self.refresh_token()
            if token is None:
                self.credentials.clear()
                raise AuthenticationError(
                    "Unauthorized: Please log in again", status_code=401
                )
            response = await self._raw_send(method, path, headers, **kwargs)

        if response.status_code >= 400:
            detail = response.text
            logger.error(
                "API request failed: %s %s -> %d - %s",
                method,
                path,
                response.status_code,
                detail,
            )
            error_cls = AuthenticationError if response.status_code == 401 else BackendError
            raise error_cls(
                f"API error: {response.status_code} - {detail}",
                status_code=response.status_code,
                detail=detail,
            )
        return response

    async def _raw_send(
        self,
        method: str,
        path: str,
        headers: Optional[dict[str, str]],
        **kwargs: Any,
    ) -> httpx.Response:
        merged = dict(headers or {})
        token = self.credentials.get_token()
        if token:
            merged["Authorization"] = f"Bearer {token}"
        else:
            logger.debug("No token available for %s %s", method, path)
        try:
            return await self._http.request(method, path, headers=merged, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("API request error: %s %s: %s", method, path, exc)
            raise BackendError(f"Request to backend failed: {exc}") from exc
