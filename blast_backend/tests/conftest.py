import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from blast_backend.app.api.deps import SearchServices, get_services
from blast_backend.domain.errors import MappingUnavailable
from blast_backend.domain.models import Job, JobStatus, SearchParameters
from blast_backend.domain.services.identifier_mapper import IdentifierMapper
from blast_backend.domain.services.job_runner import JobRunner
from blast_backend.infrastructure.persistence.in_memory_repo import InMemoryJobStore
from blast_backend.infrastructure.search_index import SearchIndexManager
from blast_backend.main import app

QUERY_50 = "MKTAYIAKQRQISFVKSHFSRQLEERLGLIEVQAPILSRVGDGTQDNLSG"

XML_HEADER = """<?xml version="1.0"?>
<BlastOutput>
  <BlastOutput_program>blastp</BlastOutput_program>
  <BlastOutput_version>BLASTP 2.16.0+</BlastOutput_version>
  <BlastOutput_reference>Stephen F. Altschul et al.</BlastOutput_reference>
  <BlastOutput_db>hsndb</BlastOutput_db>
  <BlastOutput_query-ID>Query_1</BlastOutput_query-ID>
  <BlastOutput_query-def>query</BlastOutput_query-def>
  <BlastOutput_query-len>50</BlastOutput_query-len>
  <BlastOutput_param>
    <Parameters>
      <Parameters_matrix>BLOSUM62</Parameters_matrix>
      <Parameters_expect>10</Parameters_expect>
      <Parameters_gap-open>11</Parameters_gap-open>
      <Parameters_gap-extend>1</Parameters_gap-extend>
      <Parameters_filter>F</Parameters_filter>
    </Parameters>
  </BlastOutput_param>
  <BlastOutput_iterations>
    <Iteration>
      <Iteration_iter-num>1</Iteration_iter-num>
      <Iteration_query-ID>Query_1</Iteration_query-ID>
      <Iteration_query-def>query</Iteration_query-def>
      <Iteration_query-len>50</Iteration_query-len>
      <Iteration_hits>
"""

XML_FOOTER = """      </Iteration_hits>
      <Iteration_stat>
        <Statistics>
          <Statistics_db-num>4533</Statistics_db-num>
          <Statistics_db-len>2553781</Statistics_db-len>
          <Statistics_hsp-len>0</Statistics_hsp-len>
          <Statistics_eff-space>0</Statistics_eff-space>
          <Statistics_kappa>0.041</Statistics_kappa>
          <Statistics_lambda>0.267</Statistics_lambda>
          <Statistics_entropy>0.14</Statistics_entropy>
        </Statistics>
      </Iteration_stat>
    </Iteration>
  </BlastOutput_iterations>
</BlastOutput>
"""

HIT_TEMPLATE = """        <Hit>
          <Hit_num>{num}</Hit_num>
          <Hit_id>{hit_id}</Hit_id>
          <Hit_def>{hit_def}</Hit_def>
          <Hit_accession>{accession}</Hit_accession>
          <Hit_len>{length}</Hit_len>
          <Hit_hsps>
            <Hsp>
              <Hsp_num>1</Hsp_num>
              <Hsp_bit-score>{bits}</Hsp_bit-score>
              <Hsp_score>{score}</Hsp_score>
              <Hsp_evalue>{evalue}</Hsp_evalue>
              <Hsp_query-from>1</Hsp_query-from>
              <Hsp_query-to>{align_len}</Hsp_query-to>
              <Hsp_hit-from>11</Hsp_hit-from>
              <Hsp_hit-to>{hit_to}</Hsp_hit-to>
              <Hsp_query-frame>0</Hsp_query-frame>
              <Hsp_hit-frame>0</Hsp_hit-frame>
              <Hsp_identity>{identity}</Hsp_identity>
              <Hsp_positive>{positive}</Hsp_positive>
              <Hsp_gaps>{gaps}</Hsp_gaps>
              <Hsp_align-len>{align_len}</Hsp_align-len>
              <Hsp_qseq>{qseq}</Hsp_qseq>
              <Hsp_hseq>{hseq}</Hsp_hseq>
              <Hsp_midline>{midline}</Hsp_midline>
            </Hsp>
          </Hit_hsps>
        </Hit>
"""

# (hit_id, hit_def, evalue, identities, positives)
DEFAULT_HITS = [
    ("sp|A0A024RBG1|NUD4B_HUMAN", "Diphosphoinositol polyphosphate phosphohydrolase NUDT4B OS=Homo sapiens OX=9606 GN=NUDT4B", "1e-05", 30, 38),
    ("sp|P04406|G3P_HUMAN", "Glyceraldehyde-3-phosphate dehydrogenase OS=Homo sapiens OX=9606 GN=GAPDH", "1e-50", 50, 50),
    ("tr|Q9Y6K1|Q9Y6K1_HUMAN", "DNA methyltransferase 3A OS=Homo sapiens OX=9606", "1", 12, 20),
    ("sp|P68104|EF1A1_HUMAN", "Elongation factor 1-alpha 1 OS=Homo sapiens OX=9606 GN=EEF1A1", "1e-10", 41, 45),
]


def blast_xml(hits: Iterable[tuple] = DEFAULT_HITS, align_len: int = 50) -> str:
    body = []
    for num, (hit_id, hit_def, evalue, identity, positive) in enumerate(hits, start=1):
        body.append(
            HIT_TEMPLATE.format(
                num=num,
                hit_id=hit_id,
                hit_def=hit_def,
                accession=hit_id.split("|")[1] if "|" in hit_id else hit_id,
                length=400,
                bits=120.5,
                score=300,
                evalue=evalue,
                align_len=align_len,
                hit_to=10 + align_len,
                identity=identity,
                positive=positive,
                gaps=0,
                qseq=QUERY_50[:align_len],
                hseq=QUERY_50[:align_len],
                midline=QUERY_50[:align_len],
            )
        )
    return XML_HEADER + "".join(body) + XML_FOOTER


class FakeIdentitySource:
    """In-memory identity table served in pages; optionally fails at one offset."""

    def __init__(self, rows: List[Dict], fail_at: Optional[int] = None) -> None:
        self.rows = rows
        self.fail_at = fail_at
        self.calls: List[tuple] = []

    def fetch_page(self, offset: int, limit: int):
        self.calls.append((offset, limit))
        if self.fail_at is not None and offset >= self.fail_at:
            raise MappingUnavailable(f"simulated failure at offset {offset}")
        page = self.rows[offset:offset + limit]
        return page, offset + len(page) < len(self.rows)


def identity_rows(count: int, missing_every: int = 0) -> List[Dict]:
    rows = []
    for i in range(count):
        accession = f"P{i:05d}"
        if missing_every and i % missing_every == 0:
            accession = None
        rows.append(
            {
                "hsn_id": f"HSN{i:05d}",
                "uniprot_id": accession,
                "gene_name": f"GENE{i}",
                "protein_name": f"Protein {i}",
            }
        )
    return rows


class FakeAligner:
    """Writes canned XML where BLAST would write its output."""

    def __init__(self, xml: str) -> None:
        self.xml = xml
        self.calls: List[tuple] = []

    def run(self, params: SearchParameters, query_path: Path, output_path: Path) -> None:
        self.calls.append((params, query_path.read_text(), output_path))
        output_path.write_text(self.xml)


class FailingAligner:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.seen_paths: List[Path] = []

    def run(self, params, query_path: Path, output_path: Path) -> None:
        self.seen_paths += [query_path, output_path]
        output_path.write_text("<partial")
        raise self.error


def wait_for_job(runner: JobRunner, job_id: str, timeout: float = 10.0) -> Job:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = runner.get_status(job_id)
        if job is not None and job.status.is_terminal:
            return job
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish within {timeout}s")


@pytest.fixture
def store():
    return InMemoryJobStore(max_size=100)


@pytest.fixture
def loaded_mapper():
    rows = [
        {"hsn_id": "HSN00001", "uniprot_id": "A0A024RBG1", "gene_name": "NUDT4B", "protein_name": "Diphosphoinositol polyphosphate phosphohydrolase NUDT4B"},
        {"hsn_id": "HSN00002", "uniprot_id": "P04406", "gene_name": "GAPDH", "protein_name": "Glyceraldehyde-3-phosphate dehydrogenase"},
        {"hsn_id": "HSN00003", "uniprot_id": "P68104", "gene_name": "EEF1A1", "protein_name": "Elongation factor 1-alpha 1"},
    ]
    mapper = IdentifierMapper(FakeIdentitySource(rows), page_size=2)
    assert mapper.load()
    return mapper


@pytest.fixture
def failed_mapper():
    mapper = IdentifierMapper(FakeIdentitySource([], fail_at=0))
    assert not mapper.load()
    return mapper


@pytest.fixture
def make_runner(store, tmp_path):
    runners: List[JobRunner] = []

    def _make(mapper, aligner, **kwargs) -> JobRunner:
        kwargs.setdefault("temp_dir", tmp_path / "work")
        kwargs.setdefault("max_workers", 2)
        runner = JobRunner(store, mapper, aligner, **kwargs)
        runners.append(runner)
        return runner

    yield _make
    for runner in runners:
        runner.shutdown(wait=True)


@pytest.fixture
def make_client(store, tmp_path):
    def _make(runner: JobRunner, mapper: IdentifierMapper) -> TestClient:
        services = SearchServices(
            store=store,
            mapper=mapper,
            index=SearchIndexManager(tmp_path / "blastdb" / "hsndb", tmp_path / "missing.fasta"),
            runner=runner,
            index_ready=True,
        )
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app)

    yield _make
    app.dependency_overrides.pop(get_services, None)


def make_job(job_id: str, *, start_time: Optional[float] = None, status: JobStatus = JobStatus.PENDING) -> Job:
    params = SearchParameters(
        sequence=QUERY_50, algorithm="blastp", evalue=10.0, max_target_seqs=500, matrix="BLOSUM62"
    )
    job = Job(id=job_id, parameters=params, status=status)
    if start_time is not None:
        job.start_time = start_time
    return job
