from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blast_backend.domain.models import Job, JobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(CamelModel):
    sequence: Optional[str] = None
    algorithm: str = "blastp"
    significance_threshold: Optional[float] = Field(
        None, validation_alias=AliasChoices("significanceThreshold", "evalue")
    )
    max_results: Optional[int] = Field(
        None, validation_alias=AliasChoices("maxResults", "maxTargetSeqs")
    )
    matrix: Optional[str] = None
    word_size: Optional[int] = None
    gap_open: Optional[int] = None
    gap_extend: Optional[int] = None

    def to_request(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "algorithm": self.algorithm,
            "evalue": self.significance_threshold,
            "max_target_seqs": self.max_results,
            "matrix": self.matrix,
            "word_size": self.word_size,
            "gap_open": self.gap_open,
            "gap_extend": self.gap_extend,
        }


class SubmitResponse(CamelModel):
    job_id: str
    message: str = "BLAST search submitted successfully"
    estimated_time: str = "5-30 seconds"


class ParametersOut(CamelModel):
    algorithm: str
    sequence_length: int
    evalue: float
    max_target_seqs: int
    matrix: str
    word_size: Optional[int] = None
    gap_open: Optional[int] = None
    gap_extend: Optional[int] = None


class JobStatusOut(CamelModel):
    job_id: str
    status: JobStatus
    progress: int
    start_time: float
    completed_time: Optional[float] = None
    estimated_time_remaining: Optional[int] = None
    error: Optional[str] = None
    parameters: ParametersOut

    @classmethod
    def from_job(cls, job: Job, now: float) -> "JobStatusOut":
        remaining = None
        if job.status == JobStatus.RUNNING and job.progress > 0:
            elapsed = now - job.start_time
            total_estimated = elapsed / (job.progress / 100)
            remaining = max(0, round(total_estimated - elapsed))
        params = job.parameters
        return cls(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            start_time=job.start_time,
            completed_time=job.completed_time,
            estimated_time_remaining=remaining,
            error=job.error,
            parameters=ParametersOut(
                algorithm=params.algorithm,
                sequence_length=len(params.sequence),
                evalue=params.evalue,
                max_target_seqs=params.max_target_seqs,
                matrix=params.matrix,
                word_size=params.word_size,
                gap_open=params.gap_open,
                gap_extend=params.gap_extend,
            ),
        )


class JobPendingOut(CamelModel):
    message: str = "Job not completed yet"
    status: JobStatus
    progress: int


class JobSummary(CamelModel):
    job_id: str
    status: JobStatus
    progress: int
    start_time: float
    algorithm: str
    sequence_length: int


class StoreStatsOut(CamelModel):
    total: int
    by_status: Dict[str, int]
    max_size: int


class JobListOut(CamelModel):
    jobs: List[JobSummary]
    total: int
    stats: StoreStatsOut

