import re
from typing import Any, List, Mapping, Optional

from blast_backend import config
from blast_backend.domain.errors import ValidationError
from blast_backend.domain.models import SearchParameters

ALGORITHMS = ("blastp", "blastn", "blastx", "tblastn", "tblastx")
MATRICES = ("BLOSUM45", "BLOSUM50", "BLOSUM62", "BLOSUM80", "BLOSUM90", "PAM30", "PAM70", "PAM250")

MAX_EVALUE = 1000.0
MAX_TARGET_SEQS = 5000
WORD_SIZE_RANGE = (2, 128)
GAP_PENALTY_RANGE = (0, 100)

_PROTEIN = re.compile(r"^[ACDEFGHIKLMNPQRSTVWYX*-]+$", re.IGNORECASE)
_NUCLEOTIDE = re.compile(r"^[ACGTUNRYMKSWBDHV-]+$", re.IGNORECASE)


def clean_sequence(raw: str) -> str:
    """Drop FASTA header lines and all whitespace, upper-case the residues."""
    lines = [line for line in raw.splitlines() if not line.lstrip().startswith(">")]
    return re.sub(r"\s+", "", "".join(lines)).replace(">", "").upper()


def validate_sequence(
    raw: Any,
    *,
    min_length: int = config.MIN_SEQUENCE_LENGTH,
    max_length: int = config.MAX_SEQUENCE_LENGTH,
) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(["Sequence cannot be empty"])

    sequence = clean_sequence(raw)
    if not sequence:
        raise ValidationError(["Sequence cannot be empty"])
    if len(sequence) < min_length:
        raise ValidationError([f"Sequence must be at least {min_length} characters long"])
    if len(sequence) > max_length:
        raise ValidationError([f"Sequence cannot exceed {max_length} characters"])
    if not _PROTEIN.match(sequence) and not _NUCLEOTIDE.match(sequence):
        raise ValidationError(
            ["Sequence contains invalid characters. Only amino acid or nucleotide letters are allowed."]
        )
    return sequence


def _number(value: Any, cast, name: str, errors: List[str]) -> Optional[Any]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        errors.append(f"{name} must be a number")
        return None
    try:
        number = cast(value)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a number")
        return None
    if cast is int and isinstance(value, float) and not value.is_integer():
        errors.append(f"{name} must be an integer")
        return None
    return number


def _in_range(value: Optional[float], low: float, high: float, message: str, errors: List[str]) -> None:
    if value is not None and not (low <= value <= high):
        errors.append(message)


def validate_request(
    request: Mapping[str, Any],
    *,
    min_length: int = config.MIN_SEQUENCE_LENGTH,
    max_length: int = config.MAX_SEQUENCE_LENGTH,
) -> SearchParameters:
    """
    Validate a raw search request and return normalized parameters.

    Parameter problems are collected and reported together; a bad sequence is
    reported on its own since nothing else matters until it is fixed.
    """
    sequence = validate_sequence(request.get("sequence"), min_length=min_length, max_length=max_length)
    errors: List[str] = []

    algorithm = request.get("algorithm") or config.DEFAULT_ALGORITHM
    if algorithm not in ALGORITHMS:
        errors.append(f"Invalid algorithm. Must be one of: {', '.join(ALGORITHMS)}")

    evalue = _number(request.get("evalue"), float, "E-value", errors)
    if evalue is not None and not (0 < evalue <= MAX_EVALUE):
        errors.append(f"E-value must be a positive number no greater than {MAX_EVALUE:g}")

    max_target_seqs = _number(request.get("max_target_seqs"), int, "Max target sequences", errors)
    _in_range(
        max_target_seqs, 1, MAX_TARGET_SEQS,
        f"Max target sequences must be between 1 and {MAX_TARGET_SEQS}", errors,
    )

    matrix = request.get("matrix") or config.DEFAULT_MATRIX
    if not isinstance(matrix, str) or matrix.upper() not in MATRICES:
        errors.append(f"Invalid matrix. Must be one of: {', '.join(MATRICES)}")
    else:
        matrix = matrix.upper()

    word_size = _number(request.get("word_size"), int, "Word size", errors)
    _in_range(word_size, *WORD_SIZE_RANGE, f"Word size must be between {WORD_SIZE_RANGE[0]} and {WORD_SIZE_RANGE[1]}", errors)

    gap_open = _number(request.get("gap_open"), int, "Gap open penalty", errors)
    _in_range(gap_open, *GAP_PENALTY_RANGE, "Gap open penalty must be between 0 and 100", errors)
    gap_extend = _number(request.get("gap_extend"), int, "Gap extend penalty", errors)
    _in_range(gap_extend, *GAP_PENALTY_RANGE, "Gap extend penalty must be between 0 and 100", errors)

    if errors:
        raise ValidationError(errors)

    return SearchParameters(
        sequence=sequence,
        algorithm=algorithm,
        evalue=config.DEFAULT_EVALUE if evalue is None else evalue,
        max_target_seqs=config.DEFAULT_MAX_TARGET_SEQS if max_target_seqs is None else max_target_seqs,
        matrix=matrix,
        word_size=word_size,
        gap_open=gap_open,
        gap_extend=gap_extend,
    )
