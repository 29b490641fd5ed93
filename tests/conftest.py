"""Shared test fixtures for the reconciliation console tests.

No network is used: the backend is an in-memory fake served through
``httpx.MockTransport``, and the FastAPI app gets a client bound to it via
dependency overrides.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from recon_console.api.dependencies import get_client, get_registry
from recon_console.clients.backend import ReconciliationApiClient
from recon_console.clients.credentials import InMemoryCredentials
from recon_console.main import app
from recon_console.services.view_state.registry import SessionRegistry

BACKEND_URL = "http://backend.test"
AUTH_ECHO_PATHS = {
    "/api/auth/change-password",
    "/api/auth/verify",
    "/api/auth/activate",
    "/api/auth/resend-verification",
    "/api/auth/reset-password",
}


def make_raw_batch(
    batch_id: int = 1,
    status: str = "COMPLETED",
    created_at: Optional[str] = "2024-03-01T10:00:00Z",
    updated_at: Optional[str] = "2024-03-01T10:02:05Z",
    **extra: Any,
) -> dict[str, Any]:
    """A batch as the backend returns it."""
    raw = {
        "id": batch_id,
        "status": status,
        "createdAt": created_at,
        "updatedAt": updated_at,
        "backofficeFile": f"/data/uploads/backoffice_{batch_id}.csv",
        "vendorFile": f"/data/uploads/vendor_{batch_id}.csv",
        "processedRecords": 0,
    }
    raw.update(extra)
    return raw


def make_raw_record(
    record_id: int = 1,
    match_status: str = "MATCH",
    amount: Any = 100,
    direction: str = "Debit",
    bank_amount: Any = None,
    discrepancies: Any = None,
    **extra: Any,
) -> dict[str, Any]:
    """A record with JSON-in-string fields, as the backend returns it."""
    display = {
        "vendor": {
            "core": {
                "transaction_id": f"V-{record_id}",
                "amount": amount,
                "date": "2024-03-01",
                "description": f"Payment {record_id}",
                "direction": direction,
                "status": "SETTLED",
            },
            "raw": {},
        },
        "backoffice": {
            "core": {
                "transaction_id": f"B-{record_id}",
                "amount": amount if bank_amount is None else bank_amount,
                "date": "2024-03-01",
                "description": f"Payment {record_id}",
                "direction": direction,
            },
            "raw": {},
        },
    }
    raw = {
        "id": record_id,
        "matchStatus": match_status,
        "confidence": 0.9,
        "displayData": json.dumps(display),
        "discrepancies": json.dumps(discrepancies) if discrepancies is not None else None,
        "fieldFlags": None,
        "resolved": False,
        "resolutionComment": None,
        "createdAt": "2024-03-01T10:00:00Z",
    }
    raw.update(extra)
    return raw


class FakeBackend:
    """In-memory stand-in for the reconciliation backend REST API."""

    def __init__(self) -> None:
        self.batches: list[dict[str, Any]] = []
        self.records: dict[int, list[dict[str, Any]]] = {}
        self.templates: list[dict[str, Any]] = []
        self.users: list[dict[str, Any]] = [{"id": "u1", "username": "ana"}]
        self.roles: list[dict[str, Any]] = [{"id": "1", "role": "ADMIN", "permissions": []}]
        self.permissions: list[dict[str, Any]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []
        self.report = b"PK\x03\x04summary"
        self.next_batch_id = 100

    # -- test helpers --

    def add_batch(self, batch_id: int, records: Optional[list[dict]] = None, **kw: Any) -> None:
        self.batches.append(make_raw_batch(batch_id, **kw))
        self.records[batch_id] = list(records or [])

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self.failures[(method, path)] = status

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    # -- transport --

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path

        status = self.failures.get((method, path))
        if status:
            return httpx.Response(status, text="backend failure")

        if path == "/api/recon/batches" and method == "GET":
            return httpx.Response(200, json=self.batches)

        match = re.fullmatch(r"/api/recon/batches/(\d+)(/\w[\w-]*)?", path)
        if match:
            batch_id, suffix = int(match.group(1)), match.group(2)
            batch = next((b for b in self.batches if b["id"] == batch_id), None)
            if batch is None:
                return httpx.Response(404, text="Batch not found")
            if suffix is None:
                return httpx.Response(200, json=batch)
            if suffix == "/records":
                return httpx.Response(200, json=self.records.get(batch_id, []))
            if suffix == "/status-counts":
                counts: dict[str, int] = {}
                for record in self.records.get(batch_id, []):
                    counts[record["matchStatus"]] = counts.get(record["matchStatus"], 0) + 1
                return httpx.Response(200, json=counts)
            if suffix == "/retry" and method == "POST":
                batch["status"] = "PROCESSING"
                return httpx.Response(200)

        match = re.fullmatch(r"/api/recon/records/(\d+)/resolve", path)
        if match and method == "POST":
            return self._resolve(int(match.group(1)), json.loads(request.content))

        if path == "/api/recon/upload" and method == "POST":
            batch_id = self.next_batch_id
            self.next_batch_id += 1
            self.add_batch(batch_id, status="PROCESSING")
            return httpx.Response(200, json={"batchId": batch_id})

        match = re.fullmatch(r"/api/reports/summary/(\d+)", path)
        if match:
            return httpx.Response(
                200, content=self.report, headers={"content-type": "application/octet-stream"}
            )

        if path.startswith("/api/templates"):
            return self._templates(request)

        if path.startswith("/api/admin/"):
            return self._admin(request)

        if path in AUTH_ECHO_PATHS:
            return httpx.Response(200, json={"message": f"{path.rsplit('/', 1)[-1]} ok"})

        if path == "/api/auth/login" and method == "POST":
            body = json.loads(request.content)
            if body.get("password") != "secret":
                return httpx.Response(401, text="Bad credentials")
            return httpx.Response(200, json={"token": "token-login"})

        if path == "/api/auth/register" and method == "POST":
            return httpx.Response(201, json={"message": "Registered"})

        if path == "/api/auth/refresh" and method == "POST":
            return httpx.Response(200, json={"token": "token-refreshed"})

        return httpx.Response(404, text=f"No route for {method} {path}")

    def _resolve(self, record_id: int, body: dict[str, Any]) -> httpx.Response:
        for records in self.records.values():
            for record in records:
                if record["id"] == record_id:
                    comments = record.get("resolutionComment") or []
                    if isinstance(comments, str):
                        comments = [comments]
                    record["resolutionComment"] = [*comments, body["comment"]]
                    record["resolved"] = record.get("resolved") or body["resolve"]
                    return httpx.Response(200)
        return httpx.Response(404, text="Record not found")

    def _templates(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        if path == "/api/templates" and method == "GET":
            return httpx.Response(200, json=self.templates)
        if path == "/api/templates" and method == "POST":
            body = json.loads(request.content)
            body["id"] = f"t{len(self.templates) + 1}"
            self.templates.append(body)
            return httpx.Response(201, json=body)
        match = re.fullmatch(r"/api/templates/id/(\w+)", path)
        if match:
            found = next((t for t in self.templates if t["id"] == match.group(1)), None)
            if found is None:
                return httpx.Response(404, text="Template not found")
            return httpx.Response(200, json=found)
        match = re.fullmatch(r"/api/templates/(\w+)", path)
        if match and method == "GET":
            kind = match.group(1)
            return httpx.Response(200, json=[t for t in self.templates if t["type"] == kind])
        if match and method == "DELETE":
            self.templates = [t for t in self.templates if t["id"] != match.group(1)]
            return httpx.Response(204)
        if match and method == "PUT":
            body = json.loads(request.content)
            body["id"] = match.group(1)
            return httpx.Response(200, json=body)
        return httpx.Response(404, text="No template route")

    def _admin(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        body = json.loads(request.content) if request.content else None
        if path == "/api/admin/users" and method == "GET":
            return httpx.Response(200, json=self.users)
        if path == "/api/admin/roles" and method == "GET":
            return httpx.Response(200, json=self.roles)
        if path == "/api/admin/roles" and method == "POST":
            role = {"id": str(len(self.roles) + 1), "role": body["role"], "permissions": []}
            self.roles.append(role)
            return httpx.Response(201, json=role)
        if path == "/api/admin/permissions" and method == "GET":
            return httpx.Response(200, json=self.permissions)
        if path == "/api/admin/permissions" and method == "POST":
            self.permissions.append({"name": body["name"]})
            return httpx.Response(201, json={"name": body["name"]})

        match = re.fullmatch(r"/api/admin/roles/(\w+)(/permissions)?", path)
        role = next((r for r in self.roles if match and r["id"] == match.group(1)), None)
        if match and role is None:
            return httpx.Response(404, text="Role not found")
        if match and match.group(2) and method == "POST":
            role["permissions"].append(body["name"])
            return httpx.Response(200, json=role)
        if match and method == "PUT":
            role["role"] = body["role"]
            return httpx.Response(200, json=role)
        if match and method == "DELETE":
            self.roles.remove(role)
            return httpx.Response(204)
        return httpx.Response(404, text=f"No admin route for {method} {path}")


@pytest.fixture
def raw_batch():
    """Factory for raw backend batch payloads."""
    return make_raw_batch


@pytest.fixture
def raw_record():
    """Factory for raw backend record payloads."""
    return make_raw_record


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def credentials() -> InMemoryCredentials:
    return InMemoryCredentials("token-1", "refresh-1")


@pytest.fixture
def api_client(backend: FakeBackend, credentials: InMemoryCredentials):
    """Backend client wired to the fake backend."""
    client = ReconciliationApiClient(
        BACKEND_URL, credentials, transport=httpx.MockTransport(backend.handler)
    )
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def client(api_client: ReconciliationApiClient):
    """FastAPI test client with the backend client and session registry overridden."""
    registry = SessionRegistry()
    app.dependency_overrides[get_client] = lambda: api_client
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    registry.clear()
    app.dependency_overrides.clear()
