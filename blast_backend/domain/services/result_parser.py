"""
Turns BLAST XML (-outfmt 5) into a SearchResult.

Hits keep only their best (first) HSP. Missing numbers fall back to values that
keep sorting sane: an absent e-value becomes NOT_SIGNIFICANT_EVALUE rather
than zero.
"""
import io
import logging
from typing import Callable, List, Optional

from Bio.Blast import NCBIXML

from blast_backend import config
from blast_backend.domain.errors import ParseError
from blast_backend.domain.models import Hit, IdentityRecord, SearchResult, SearchStatistics

logger = logging.getLogger(__name__)

NOT_SIGNIFICANT_EVALUE = 1.0e6

# Karlin-Altschul defaults for BLOSUM62 with gapped alignment
DEFAULT_KAPPA = 0.041
DEFAULT_LAMBDA = 0.267
DEFAULT_ENTROPY = 0.14

IdentityResolver = Callable[[str, str], IdentityRecord]


def _as_int(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return default


def _as_float(value, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def percent(part: int, whole: int) -> float:
    """``part / whole * 100`` rounded to one decimal; 0.0 when whole is not positive."""
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


def build_hit(alignment, resolve_identity: IdentityResolver) -> Optional[Hit]:
    hit_id = (getattr(alignment, "hit_id", "") or "").strip()
    hit_def = (getattr(alignment, "hit_def", "") or "").strip()
    hsps = getattr(alignment, "hsps", None) or []
    if not hit_id or not hsps:
        return None

    identity = resolve_identity(hit_id, hit_def)
    best = hsps[0]

    align_len = _as_int(getattr(best, "align_length", None), 0)
    identities = _as_int(getattr(best, "identities", None), 0)
    positives = _as_int(getattr(best, "positives", None), 0)

    return Hit(
        id=identity.id,
        hsn_id=identity.hsn_id,
        accession=identity.accession,
        gene_name=identity.gene_name,
        protein_name=identity.protein_name,
        description=identity.description or hit_def,
        evalue=_as_float(getattr(best, "expect", None), NOT_SIGNIFICANT_EVALUE),
        score=_as_float(getattr(best, "score", None), 0.0),
        bit_score=_as_float(getattr(best, "bits", None), 0.0),
        identity=percent(identities, align_len),
        positives=percent(positives, align_len),
        gaps=_as_int(getattr(best, "gaps", None), 0),
        query_start=_as_int(getattr(best, "query_start", None), 1),
        query_end=_as_int(getattr(best, "query_end", None), 1),
        subject_start=_as_int(getattr(best, "sbjct_start", None), 1),
        subject_end=_as_int(getattr(best, "sbjct_end", None), 1),
        query_seq=getattr(best, "query", "") or "",
        subject_seq=getattr(best, "sbjct", "") or "",
        alignment=getattr(best, "match", "") or "",
        length=align_len,
    )


def sort_hits(hits: List[Hit]) -> List[Hit]:
    return sorted(hits, key=lambda h: h.evalue)


def _statistics(record) -> SearchStatistics:
    kappa, lambda_, entropy = DEFAULT_KAPPA, DEFAULT_LAMBDA, DEFAULT_ENTROPY
    ka_params = getattr(record, "ka_params", None)
    if isinstance(ka_params, (tuple, list)) and len(ka_params) == 3:
        lambda_ = _as_float(ka_params[0], DEFAULT_LAMBDA)
        kappa = _as_float(ka_params[1], DEFAULT_KAPPA)
        entropy = _as_float(ka_params[2], DEFAULT_ENTROPY)
    return SearchStatistics(
        kappa=kappa,
        lambda_=lambda_,
        entropy=entropy,
        database=config.DATABASE_NAME,
        database_version=config.DATABASE_VERSION,
        total_sequences=config.DATABASE_TOTAL_SEQUENCES,
    )


def empty_result(job_id: str, query_length: int) -> SearchResult:
    return SearchResult(
        job_id=job_id,
        query_length=query_length,
        database_size=config.DATABASE_TOTAL_SEQUENCES,
        hits=[],
        statistics=_statistics(None),
    )


def parse_blast_xml(
    xml_text: str,
    *,
    job_id: str,
    query_length: int,
    resolve_identity: IdentityResolver,
) -> SearchResult:
    """
    Parse the first BLAST iteration of ``xml_text``. No iteration or no hits
    gives an empty result; unreadable XML raises ParseError.
    """
    try:
        records = NCBIXML.parse(io.StringIO(xml_text))
        record = next(records, None)
    except Exception as e:  # noqa: BLE001 - expat and Biopython raise assorted types
        raise ParseError(f"Failed to parse BLAST results: {e}") from e

    if record is None:
        return empty_result(job_id, query_length)

    hits: List[Hit] = []
    for alignment in getattr(record, "alignments", None) or []:
        hit = build_hit(alignment, resolve_identity)
        if hit is None:
            logger.debug("Skipping hit without id or HSPs in job %s", job_id)
            continue
        hits.append(hit)

    db_size = _as_int(getattr(record, "num_sequences_in_database", None), 0)
    return SearchResult(
        job_id=job_id,
        query_length=query_length,
        database_size=db_size or config.DATABASE_TOTAL_SEQUENCES,
        hits=sort_hits(hits),
        statistics=_statistics(record),
    )
