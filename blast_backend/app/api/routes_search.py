import logging
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from blast_backend.app.api.deps import SearchServices, get_services
from blast_backend.app.schemas.jobs import (
    JobListOut,
    JobPendingOut,
    JobStatusOut,
    JobSummary,
    SearchRequest,
    StoreStatsOut,
    SubmitResponse,
)
from blast_backend.app.schemas.results import SearchResultOut
from blast_backend.domain.errors import ValidationError
from blast_backend.domain.models import Job, JobStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


def _lookup_job(job_id: str, services: SearchServices) -> Job:
    try:
        uuid.UUID(job_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid job ID")

    job = services.runner.get_status(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/submit", response_model=SubmitResponse, status_code=202)
async def submit_search(body: SearchRequest, services: SearchServices = Depends(get_services)):
    """
    Queue a BLAST search. Returns the job id immediately; poll /search/status/{job_id}.
    """
    logger.info(
        "Received BLAST request: algorithm=%s evalue=%s max_results=%s sequence_length=%s",
        body.algorithm,
        body.significance_threshold,
        body.max_results,
        len(body.sequence) if body.sequence else 0,
    )
    try:
        job_id = services.runner.submit(body.to_request())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SubmitResponse(job_id=job_id)


@router.get("/status/{job_id}", response_model=JobStatusOut)
async def get_search_status(job_id: str, services: SearchServices = Depends(get_services)):
    job = _lookup_job(job_id, services)
    return JobStatusOut.from_job(job, now=time.time())


@router.get("/results/{job_id}", response_model=SearchResultOut)
async def get_search_results(job_id: str, services: SearchServices = Depends(get_services)):
    job = _lookup_job(job_id, services)

    if job.status == JobStatus.FAILED:
        raise HTTPException(status_code=400, detail=job.error or "Job failed")

    if job.status != JobStatus.COMPLETED:
        pending = JobPendingOut(status=job.status, progress=job.progress)
        return JSONResponse(status_code=202, content=pending.model_dump(by_alias=True, mode="json"))

    if job.results is None:
        raise HTTPException(status_code=404, detail="No results available")

    return SearchResultOut.from_result(job.results)


@router.get("/jobs", response_model=JobListOut)
async def list_jobs(services: SearchServices = Depends(get_services)):
    """Debug listing of every job still held in the store."""
    jobs = [
        JobSummary(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            start_time=job.start_time,
            algorithm=job.parameters.algorithm,
            sequence_length=len(job.parameters.sequence),
        )
        for job in services.runner.list_jobs()
    ]
    return JobListOut(jobs=jobs, total=len(jobs), stats=StoreStatsOut(**services.store.stats()))
