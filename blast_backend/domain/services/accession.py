"""
Accession extraction from FASTA / BLAST hit headers.

Matchers are tried in order, most specific first, so that a generic pattern
never grabs a substring of a better-qualified identifier.
"""
import re
from typing import List, Optional, Pattern, Tuple

from blast_backend.domain.models import UNKNOWN_GENE, UNKNOWN_PROTEIN, IdentityRecord

ACCESSION_MATCHERS: List[Tuple[str, Pattern[str]]] = [
    ("swissprot", re.compile(r"\bsp\|([A-Za-z0-9]+)(?:\.\d+)?\|")),
    ("trembl", re.compile(r"\btr\|([A-Za-z0-9]+)(?:\.\d+)?\|")),
    ("bare_accession", re.compile(r"^([A-Z0-9]{6,10})(?=[\s|]|$)")),
    ("hsn_id", re.compile(r"(HSN\d+)")),
    ("first_token", re.compile(r"^([^\s|]+)")),
]

ORGANISM_MARKER = " OS="
FALLBACK_DESCRIPTION = "Parsed from FASTA header (fallback)"


def clean_header(header: str) -> str:
    return header.strip().lstrip(">").strip()


def extract_accession(header: str) -> str:
    cleaned = clean_header(header)
    for _name, pattern in ACCESSION_MATCHERS:
        match = pattern.search(cleaned)
        if match:
            return match.group(1)
    parts = cleaned.split()
    return parts[0] if parts else ""


def _full_header(hit_id: str, hit_def: str) -> str:
    # With -parse_seqids BLAST moves the id out of Hit_def into Hit_id
    first = hit_def.split(maxsplit=1)[0] if hit_def.strip() else ""
    if "|" in first or not hit_id:
        return hit_def
    return f"{hit_id} {hit_def}".strip()


def parse_fallback_identity(hit_id: str, hit_def: str, accession: Optional[str] = None) -> IdentityRecord:
    """
    Best-effort identity from the raw header, used when the identity table is unavailable.

    ``sp|A0A024RBG1|NUD4B_HUMAN Nucleoside diphosphate-linked moiety X motif 4B OS=Homo sapiens``
    gives accession A0A024RBG1, gene hint NUD4B and the name up to ``OS=``.
    Anything that does not look like that keeps the sentinel names.
    """
    header = _full_header(hit_id, hit_def)
    tokens = header.split()
    id_parts = tokens[0].split("|") if tokens else []

    resolved = accession or hit_id
    gene_name = UNKNOWN_GENE
    protein_name = UNKNOWN_PROTEIN

    if len(id_parts) >= 3:
        resolved = id_parts[1] or resolved
        entry_name = id_parts[2]
        if "_" in entry_name:
            gene_name = entry_name.split("_", 1)[0] or UNKNOWN_GENE

        _, _, description = header.partition(" ")
        description = description.strip()
        if description:
            marker = description.find(ORGANISM_MARKER)
            if marker > 0:
                description = description[:marker].strip()
            protein_name = description or UNKNOWN_PROTEIN

    return IdentityRecord(
        id=resolved,
        accession=resolved,
        gene_name=gene_name,
        protein_name=protein_name,
        hsn_id=hit_id or resolved,
        description=FALLBACK_DESCRIPTION,
    )
