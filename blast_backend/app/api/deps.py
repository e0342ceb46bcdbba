"""
Service container shared by the routes.

The app lifespan builds one SearchServices and installs it with set_services();
tests swap it through app.dependency_overrides[get_services].
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException

from blast_backend import config
from blast_backend.domain.services.identifier_mapper import IdentifierMapper
from blast_backend.domain.services.job_runner import JobRunner
from blast_backend.infrastructure.blast_adapter import BlastAligner
from blast_backend.infrastructure.identity_source import SupabaseIdentitySource
from blast_backend.infrastructure.persistence.in_memory_repo import InMemoryJobStore
from blast_backend.infrastructure.search_index import SearchIndexManager


@dataclass
class SearchServices:
    store: InMemoryJobStore
    mapper: IdentifierMapper
    index: SearchIndexManager
    runner: JobRunner
    index_ready: bool = False


def build_services() -> SearchServices:
    store = InMemoryJobStore(max_size=config.JOB_STORE_MAX_SIZE)
    mapper = IdentifierMapper(SupabaseIdentitySource(), page_size=config.IDENTITY_PAGE_SIZE)
    index = SearchIndexManager()
    runner = JobRunner(store, mapper, BlastAligner())
    return SearchServices(store=store, mapper=mapper, index=index, runner=runner)


_services: Optional[SearchServices] = None


def set_services(services: Optional[SearchServices]) -> None:
    global _services
    _services = services


def get_services() -> SearchServices:
    if _services is None:
        raise HTTPException(status_code=503, detail="Search service is starting up")
    return _services
