from dataclasses import asdict
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blast_backend.domain.models import Hit, SearchResult


class HitOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    hsn_id: Optional[str] = None
    accession: str
    gene_name: str
    protein_name: str
    description: str
    evalue: float
    score: float
    bit_score: float
    identity: float
    positives: float
    gaps: int
    query_start: int
    query_end: int
    subject_start: int
    subject_end: int
    query_seq: str
    subject_seq: str
    alignment: str
    length: int


class StatisticsOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kappa: float
    lambda_: float = Field(alias="lambda")
    entropy: float
    database: str
    database_version: str
    total_sequences: int


class SearchResultOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    query_length: int
    database_size: int
    total_hits: int
    hits: List[HitOut]
    statistics: StatisticsOut
    execution_time: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultOut":
        return cls(
            job_id=result.job_id,
            query_length=result.query_length,
            database_size=result.database_size,
            total_hits=result.total_hits,
            hits=[hit_out(h) for h in result.hits],
            statistics=StatisticsOut(**asdict(result.statistics)),
            execution_time=result.execution_time,
        )


def hit_out(hit: Hit) -> HitOut:
    return HitOut(**asdict(hit))
