import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Union

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from blast_backend import config
from blast_backend.domain.errors import ParseError, PipelineError, SearchError
from blast_backend.domain.models import TRANSITIONS, IdentityRecord, Job, JobStatus, SearchParameters, SearchResult
from blast_backend.domain.services.accession import parse_fallback_identity
from blast_backend.domain.services.identifier_mapper import IdentifierMapper
from blast_backend.domain.services.result_parser import parse_blast_xml
from blast_backend.domain.services.validation import validate_request
from blast_backend.infrastructure.persistence.in_memory_repo import InMemoryJobStore

logger = logging.getLogger(__name__)

# Progress checkpoints along the pipeline
PROGRESS_RUNNING = 10
PROGRESS_INPUT_STAGED = 30
PROGRESS_TOOL_STARTED = 50
PROGRESS_TOOL_FINISHED = 80
PROGRESS_PARSED = 95
PROGRESS_DONE = 100


class Aligner(Protocol):
    def run(self, params: SearchParameters, query_path: Path, output_path: Path) -> None:
        ...


def write_query_fasta(sequence: str, path: Path) -> None:
    record = SeqRecord(Seq(sequence), id="query", description="")
    with path.open("w") as handle:
        SeqIO.write(record, handle, "fasta")


def cleanup_files(paths: List[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to clean up %s: %s", path, e)


class JobRunner:
    """
    Accepts search requests and drives each job through the BLAST pipeline on a
    bounded worker pool:

    - stage the query FASTA
    - run the aligner
    - parse the XML and enrich hits with identity metadata
    - store the sorted result, or the error
    """

    def __init__(
        self,
        store: InMemoryJobStore,
        mapper: IdentifierMapper,
        aligner: Aligner,
        *,
        temp_dir: Union[str, Path] = config.TEMP_DIR,
        max_workers: int = config.MAX_CONCURRENT_SEARCHES,
        min_sequence_length: int = config.MIN_SEQUENCE_LENGTH,
        max_sequence_length: int = config.MAX_SEQUENCE_LENGTH,
    ) -> None:
        self.store = store
        self.mapper = mapper
        self.aligner = aligner
        self.temp_dir = Path(temp_dir)
        self.min_sequence_length = min_sequence_length
        self.max_sequence_length = max_sequence_length
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="blast-job")

    def submit(self, request: Mapping[str, Any]) -> str:
        """
        Validate the request, create a pending job and queue its pipeline.

        Raises ValidationError before any job exists; returns the job id otherwise.
        """
        params = validate_request(
            request,
            min_length=self.min_sequence_length,
            max_length=self.max_sequence_length,
        )
        job_id = str(uuid.uuid4())
        self.store.put(job_id, Job(id=job_id, parameters=params))
        logger.info(
            "Submitted job %s (%s, %d residues, evalue=%g)",
            job_id, params.algorithm, len(params.sequence), params.evalue,
        )
        future: Future = self._executor.submit(self.run_job, job_id)
        future.add_done_callback(self._log_unhandled)
        return job_id

    def get_status(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def get_results(self, job_id: str) -> Optional[SearchResult]:
        job = self.store.get(job_id)
        return job.results if job else None

    def list_jobs(self) -> List[Job]:
        return self.store.values()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_unhandled(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Job worker crashed: %s", exc, exc_info=exc)

    def _transition(self, job_id: str, status: JobStatus, **changes) -> Optional[Job]:
        job = self.store.get(job_id)
        if job is None:
            logger.warning("Job %s is no longer in the store, dropping %s update", job_id, status.value)
            return None
        if status not in TRANSITIONS[job.status]:
            logger.warning("Ignoring transition %s -> %s for job %s", job.status.value, status.value, job_id)
            return None
        return self.store.update(job_id, status=status, **changes)

    def _advance(self, job_id: str, progress: int) -> None:
        job = self.store.get(job_id)
        if job is not None and progress > job.progress:
            self.store.update(job_id, progress=progress)

    def _resolve_identity(self, hit_id: str, hit_def: str) -> IdentityRecord:
        acc = self.mapper.extract_accession(hit_id)
        if self.mapper.loaded:
            return self.mapper.resolve(acc)
        return parse_fallback_identity(hit_id, hit_def, acc)

    def run_job(self, job_id: str) -> None:
        """
        Background processing for one job. Every failure ends up on the job as
        ``failed`` with a message; nothing is raised to the caller.
        """
        job = self._transition(job_id, JobStatus.RUNNING, progress=PROGRESS_RUNNING)
        if job is None:
            return

        params = job.parameters
        query_path = self.temp_dir / f"query_{job_id}.fasta"
        output_path = self.temp_dir / f"results_{job_id}.xml"
        started = time.monotonic()

        if not self.mapper.loaded:
            logger.warning("Identity mappings not loaded, using fallback header parsing for job %s", job_id)

        try:
            try:
                self.temp_dir.mkdir(parents=True, exist_ok=True)
                write_query_fasta(params.sequence, query_path)
            except OSError as e:
                raise PipelineError(f"Failed to write query file: {e}") from e
            self._advance(job_id, PROGRESS_INPUT_STAGED)

            self._advance(job_id, PROGRESS_TOOL_STARTED)
            self.aligner.run(params, query_path, output_path)
            self._advance(job_id, PROGRESS_TOOL_FINISHED)

            try:
                xml_text = output_path.read_text(encoding="utf-8")
            except OSError as e:
                raise ParseError(f"Failed to read BLAST output: {e}") from e
            result = parse_blast_xml(
                xml_text,
                job_id=job_id,
                query_length=len(params.sequence),
                resolve_identity=self._resolve_identity,
            )
            self._advance(job_id, PROGRESS_PARSED)
            result.execution_time = round(time.monotonic() - started, 3)
        except SearchError as e:
            logger.error("BLAST execution error for job %s: %s", job_id, e)
            self._transition(job_id, JobStatus.FAILED, error=str(e), completed_time=time.time())
            return
        except Exception as e:  # noqa: BLE001 - top-level guard
            logger.exception("Unexpected error in job %s", job_id)
            self._transition(job_id, JobStatus.FAILED, error=str(e) or e.__class__.__name__, completed_time=time.time())
            return
        finally:
            cleanup_files([query_path, output_path])

        self._transition(
            job_id,
            JobStatus.COMPLETED,
            progress=PROGRESS_DONE,
            results=result,
            completed_time=time.time(),
        )
        logger.info("Job %s completed with %d hits in %.2fs", job_id, result.total_hits, result.execution_time)

