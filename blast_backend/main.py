import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from blast_backend import config
from blast_backend.app.api import routes_admin, routes_search
from blast_backend.app.api.deps import SearchServices, build_services, get_services, set_services
from blast_backend.app.schemas.admin import HealthOut
from blast_backend.app.schemas.jobs import StoreStatsOut
from blast_backend.infrastructure.persistence.in_memory_repo import InMemoryJobStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)
access_logger = logging.getLogger("uvicorn.access")


async def sweep_jobs(store: InMemoryJobStore, interval: float, max_age: float) -> None:
    """Drop jobs older than max_age every interval seconds."""
    while True:
        await asyncio.sleep(interval)
        removed = store.sweep_older_than(max_age)
        if removed:
            logger.info("Cleaned up %d old jobs", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing HSNDB BLAST server")
    logger.info("BLAST database path: %s", config.BLAST_DB_PATH)
    logger.info("BLAST binaries path: %s", config.BLAST_BIN_PATH or "<PATH>")
    logger.info("FASTA file path: %s", config.FASTA_FILE)

    services = build_services()
    services.index_ready = await run_in_threadpool(services.index.ensure_ready)
    if await run_in_threadpool(services.mapper.load):
        logger.info("Identity mappings initialized: %d proteins", services.mapper.stats()["total_records"])
    else:
        logger.warning("Identity mappings failed to initialize, using fallback parsing")
    set_services(services)

    sweeper = asyncio.create_task(sweep_jobs(services.store, config.JOB_CLEANUP_INTERVAL, config.JOB_MAX_AGE))
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        services.runner.shutdown(wait=False)
        set_services(None)
        logger.info("HSNDB BLAST server stopped")


app = FastAPI(title="HSNDB BLAST API", version=config.APP_VERSION, lifespan=lifespan)


class LogRequestsMiddleware(BaseHTTPMiddleware):
    """Log each request as it arrives."""

    async def dispatch(self, request, call_next):
        access_logger.info("Request started: %s %s", request.method, request.url.path)
        return await call_next(request)


app.add_middleware(LogRequestsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


app.include_router(routes_search.router)
app.include_router(routes_admin.router)


@app.get("/health", response_model=HealthOut)
async def health(services: SearchServices = Depends(get_services)):
    return HealthOut(
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=config.DATABASE_NAME,
        version=config.APP_VERSION,
        index_ready=services.index_ready,
        mappings_loaded=services.mapper.loaded,
        jobs=StoreStatsOut(**services.store.stats()),
    )
