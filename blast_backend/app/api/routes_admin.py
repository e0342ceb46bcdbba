import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from blast_backend import config
from blast_backend.app.api.deps import SearchServices, get_services
from blast_backend.app.schemas.admin import DatabaseInfoOut, MappingStatsOut, RefreshOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.get("/database/info", response_model=DatabaseInfoOut)
async def database_info(services: SearchServices = Depends(get_services)):
    """Report whether the BLAST database is usable and which reference set it holds."""
    valid = await run_in_threadpool(services.index.verify)
    return DatabaseInfoOut(
        valid=valid,
        **services.index.info(),
        database=config.DATABASE_NAME,
        total_sequences=config.DATABASE_TOTAL_SEQUENCES,
        database_version=config.DATABASE_VERSION,
    )


@router.post("/mappings/refresh", response_model=RefreshOut)
async def refresh_mappings(services: SearchServices = Depends(get_services)):
    """
    Reload the identity table. A failed reload keeps the previous mappings.
    """
    refreshed = await run_in_threadpool(services.mapper.refresh)
    if not refreshed:
        logger.warning("Identity mapping refresh failed, keeping previous mappings")
    return RefreshOut(refreshed=refreshed, mappings=MappingStatsOut(**services.mapper.stats()))
