"""
Paginated reads of the protein identity table from Supabase (PostgREST).

A single PostgREST request is capped server-side (1000 rows by default), so
callers page through the table with ``fetch_page(offset, limit)``.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests

from blast_backend import config
from blast_backend.domain.errors import MappingUnavailable

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

IDENTITY_COLUMNS = ("hsn_id", "uniprot_id", "gene_name", "protein_name")

_CONTENT_RANGE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


class IdentitySource(Protocol):
    def fetch_page(self, offset: int, limit: int) -> Tuple[List[Row], bool]:
        """Return up to ``limit`` rows starting at ``offset`` and whether more rows follow."""
        ...


def _total_from_content_range(header: Optional[str]) -> Optional[int]:
    if not header:
        return None
    match = _CONTENT_RANGE.match(header.strip())
    if not match or match.group(1) == "*":
        return None
    return int(match.group(1))


class SupabaseIdentitySource:
    def __init__(
        self,
        base_url: str = config.SUPABASE_URL,
        api_key: str = config.SUPABASE_ANON_KEY,
        table: str = config.IDENTITY_TABLE,
        *,
        columns: Tuple[str, ...] = IDENTITY_COLUMNS,
        timeout: float = config.IDENTITY_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.columns = columns
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def fetch_page(self, offset: int, limit: int) -> Tuple[List[Row], bool]:
        if not self.configured:
            raise MappingUnavailable("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        url = f"{self.base_url}/rest/v1/{self.table}"
        params = {
            "select": ",".join(self.columns),
            "order": f"{self.columns[0]}.asc",
            "offset": offset,
            "limit": limit,
        }
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Prefer": "count=exact",
        }
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise MappingUnavailable(f"Failed to fetch {self.table} rows {offset}-{offset + limit - 1}: {e}") from e

        if not isinstance(rows, list):
            raise MappingUnavailable(f"Unexpected response for {self.table}: expected a JSON array")

        total = _total_from_content_range(resp.headers.get("Content-Range"))
        if total is not None:
            has_more = offset + len(rows) < total
        else:
            has_more = len(rows) == limit
        logger.debug("Fetched %d %s rows at offset %d (total=%s)", len(rows), self.table, offset, total)
        return rows, has_more
