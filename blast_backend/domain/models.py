import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

UNKNOWN_GENE = "Unknown"
UNKNOWN_PROTEIN = "Unknown protein"
DEFAULT_ORGANISM = "Homo sapiens"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed forward moves of the job state machine
TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass(frozen=True)
class SearchParameters:
    sequence: str
    algorithm: str
    evalue: float
    max_target_seqs: int
    matrix: str
    word_size: Optional[int] = None
    gap_open: Optional[int] = None
    gap_extend: Optional[int] = None


@dataclass(frozen=True)
class IdentityRecord:
    """Metadata of one reference sequence, keyed by accession in the mapper."""
    id: str
    accession: str
    gene_name: str = UNKNOWN_GENE
    protein_name: str = UNKNOWN_PROTEIN
    hsn_id: Optional[str] = None
    organism: str = DEFAULT_ORGANISM
    description: str = ""


@dataclass(frozen=True)
class Hit:
    id: str
    accession: str
    gene_name: str
    protein_name: str
    description: str
    evalue: float
    score: float
    bit_score: float
    identity: float  # percent, one decimal
    positives: float  # percent, one decimal
    gaps: int
    query_start: int
    query_end: int
    subject_start: int
    subject_end: int
    query_seq: str
    subject_seq: str
    alignment: str  # midline
    length: int
    hsn_id: Optional[str] = None


@dataclass
class SearchStatistics:
    kappa: float
    lambda_: float
    entropy: float
    database: str
    database_version: str
    total_sequences: int


@dataclass
class SearchResult:
    job_id: str
    query_length: int
    database_size: int
    hits: List[Hit]
    statistics: SearchStatistics
    execution_time: float = 0.0

    @property
    def total_hits(self) -> int:
        return len(self.hits)


@dataclass
class Job:
    id: str
    parameters: SearchParameters
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    start_time: float = field(default_factory=time.time)
    completed_time: Optional[float] = None
    results: Optional[SearchResult] = None
    error: Optional[str] = None
    last_accessed: float = field(default_factory=time.time)

