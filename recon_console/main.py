"""Reconciliation Console - Main Application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from recon_console.api.dependencies import close_client, get_registry
from recon_console.api.routes import admin, console, templates, uploads
from recon_console.core.config import settings
from recon_console.core.logging import setup_logging

# Configure logging before anything else
logger = setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Backend: %s", settings.backend_base_url)
    yield
    get_registry().clear()
    await close_client()
    logger.info("Backend client closed")


# -- OpenAPI tag metadata for Swagger grouping --
tags_metadata = [
    {
        "name": "Health",
        "description": "Service health and readiness checks.",
    },
    {
        "name": "Console",
        "description": (
            "Browse reconciliation batches and their records, filter and sort "
            "them, open record details, resolve or comment on records, retry "
            "batches and export problematic records. State is kept per "
            "session (`X-Console-Session` header)."
        ),
    },
    {
        "name": "Uploads",
        "description": (
            "Validate backoffice and vendor files against their templates and "
            "submit them as a new reconciliation batch."
        ),
    },
    {
        "name": "Templates",
        "description": "Manage the field-mapping templates used to read uploaded files.",
    },
    {
        "name": "Admin",
        "description": "Users, roles, permissions and authentication proxies.",
    },
]


app = FastAPI(
    title="Reconciliation Console",
    description=(
        "## Reconciliation Console API\n\n"
        "Operator-facing layer over the reconciliation backend. Batches and "
        "records are fetched from the backend, normalized into view models, "
        "enriched with derived statistics, and served together with the "
        "session's view state.\n\n"
        "### Record statuses\n"
        "- `MATCHED` - vendor and backoffice entries agree\n"
        "- `PARTIAL` - matched with field-level differences\n"
        "- `UNMATCHED` - no counterpart found\n"
        "- `DUPLICATE` - entry appears more than once\n"
        "- `MISSING` - expected entry absent\n\n"
        "### Quick Start\n"
        "```bash\n"
        "# 1. List batches\n"
        "curl /api/v1/console/batches\n\n"
        "# 2. Open a batch and its records\n"
        "curl /api/v1/console/batches/RB-7/records?record_status=UNMATCHED\n\n"
        "# 3. Resolve a record\n"
        'curl -X POST /api/v1/console/records/42/resolve -H "Content-Type: application/json" '
        "-d '{\"comment\":\"Bank fee, accepted\"}'\n\n"
        "# 4. Export problematic records\n"
        "curl -OJ /api/v1/console/batches/RB-7/export\n"
        "```\n"
    ),
    version="1.0.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(console.router, prefix="/api/v1/console", tags=["Console"])
app.include_router(uploads.router, prefix="/api/v1/uploads", tags=["Uploads"])
app.include_router(templates.router, prefix="/api/v1/templates", tags=["Templates"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])

logger.info("Reconciliation Console API ready - routes registered")


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint.

    Returns a simple JSON object confirming the service is running.
    """
    return {"status": "healthy", "service": "recon-console"}
