"""
Maps BLAST hit identifiers to protein metadata from the identity table.

The whole table is loaded page by page into a dict keyed by UniProt accession.
A refresh builds a new dict and swaps the reference, so readers see either the
old map or the new one, never a half-built one.
"""
import logging
from threading import Lock
from typing import Dict, Optional

from blast_backend import config
from blast_backend.domain.errors import MappingUnavailable
from blast_backend.domain.models import UNKNOWN_GENE, UNKNOWN_PROTEIN, IdentityRecord
from blast_backend.domain.services import accession
from blast_backend.infrastructure.identity_source import IdentitySource, Row

logger = logging.getLogger(__name__)

NOT_FOUND_DESCRIPTION = "Protein details not found in database"


def _text(value: object) -> str:
    return str(value).strip() if value is not None else ""


def record_from_row(row: Row) -> Optional[IdentityRecord]:
    """Build an IdentityRecord from a table row; rows without an accession give None."""
    acc = _text(row.get("uniprot_id"))
    if not acc:
        return None
    hsn_id = _text(row.get("hsn_id")) or None
    protein_name = _text(row.get("protein_name")) or UNKNOWN_PROTEIN
    return IdentityRecord(
        id=hsn_id or acc,
        accession=acc,
        gene_name=_text(row.get("gene_name")) or UNKNOWN_GENE,
        protein_name=protein_name,
        hsn_id=hsn_id,
        description=f"S-nitrosylated protein: {protein_name}",
    )


class IdentifierMapper:
    def __init__(self, source: IdentitySource, page_size: int = config.IDENTITY_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.source = source
        self.page_size = page_size
        self._records: Dict[str, IdentityRecord] = {}
        self._loaded = False
        self._refresh_lock = Lock()
        self.accepted = 0
        self.skipped = 0

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _fetch_all(self) -> Dict[str, IdentityRecord]:
        records: Dict[str, IdentityRecord] = {}
        accepted = skipped = 0
        offset = 0
        while True:
            rows, has_more = self.source.fetch_page(offset, self.page_size)
            for row in rows:
                record = record_from_row(row)
                if record is None:
                    skipped += 1
                    continue
                records[record.accession] = record
                accepted += 1
            offset += len(rows)
            if not rows or not has_more:
                break
        self.accepted, self.skipped = accepted, skipped
        logger.info("Identity table loaded: %d records accepted, %d skipped without accession", accepted, skipped)
        return records

    def load(self) -> bool:
        """Load every row of the identity table. Returns False if any page fails."""
        with self._refresh_lock:
            try:
                records = self._fetch_all()
            except MappingUnavailable as e:
                logger.warning("Identity mapping unavailable, falling back to header parsing: %s", e)
                return False
            self._records = records
            self._loaded = True
            return True

    def refresh(self) -> bool:
        """Reload the table. On failure the previously loaded map stays in place."""
        logger.info("Refreshing identity mappings")
        return self.load()

    def extract_accession(self, header: str) -> str:
        return accession.extract_accession(header)

    def resolve(self, acc: str) -> IdentityRecord:
        record = self._records.get(acc)
        if record is not None:
            return record
        logger.debug("No identity record for accession %s", acc)
        return IdentityRecord(
            id=acc,
            accession=acc,
            gene_name=UNKNOWN_GENE,
            protein_name=UNKNOWN_PROTEIN,
            description=NOT_FOUND_DESCRIPTION,
        )

    def stats(self) -> Dict[str, object]:
        return {
            "loaded": self._loaded,
            "total_records": len(self._records),
            "accepted": self.accepted,
            "skipped": self.skipped,
        }
