"""FastAPI application wiring for the folio identity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool
import uvicorn

from .api.errors import register_exception_handlers
from .api.routes import router as account_router
from .api.tenants import router as tenant_router
from .config import get_settings
from .domain.domains import DomainResolver
from .domain.errors import InternalError
from .domain.gate import PrivilegedActionGate
from .domain.portfolio import PortfolioService
from .domain.service import AccountService
from .repository import AccountRepository, TenantRepository

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the Postgres pool and services for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    tenants = TenantRepository(pool)
    resolver = DomainResolver(tenants)
    app.state.pool = pool
    app.state.tenant_repository = tenants
    app.state.account_service = AccountService(
        AccountRepository(pool),
        reset_token_ttl=timedelta(seconds=settings.reset_token_ttl_seconds),
    )
    app.state.portfolio_service = PortfolioService(resolver, tenants)
    app.state.gate = PrivilegedActionGate(resolver, settings.super_admin_domain)
    logger.info("%s started in %s mode", settings.app_name, settings.environment)
    try:
        yield
    finally:
        pool.close()
        pool.wait_close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

# tenant sites live on arbitrary custom domains; sessions travel as bearer
# headers, never cookies, so credentialed CORS stays off
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

register_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz(request: Request) -> Response:
    """Report readiness, including a round trip to Postgres."""
    try:
        request.app.state.tenant_repository.ping()
    except InternalError:
        return JSONResponse(status_code=500, content={"status": "error", "db": "error"})
    return JSONResponse(content={"status": "ok", "db": "ok"})


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(account_router)
app.include_router(tenant_router)


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    uvicorn.run("folio_identity.main:app", host=settings.http_host, port=settings.http_port)
