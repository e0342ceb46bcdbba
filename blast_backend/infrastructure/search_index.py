"""
BLAST database lifecycle: check the on-disk index, build it with makeblastdb when missing.
"""
import logging
from pathlib import Path
from typing import Dict, List, Union

from blast_backend import config
from blast_backend.domain.errors import PipelineError, SearchIndexError
from blast_backend.infrastructure.blast_adapter import run_tool, tool_path

logger = logging.getLogger(__name__)

INDEX_EXTENSIONS = {
    "prot": (".phr", ".pin", ".psq"),
    "nucl": (".nhr", ".nin", ".nsq"),
}


class SearchIndexManager:
    def __init__(
        self,
        db_path: Union[str, Path] = config.BLAST_DB_PATH,
        fasta_file: Union[str, Path] = config.FASTA_FILE,
        *,
        db_type: str = config.BLAST_DB_TYPE,
        title: str = config.BLAST_DB_TITLE,
        bin_dir: Union[str, Path] = config.BLAST_BIN_PATH,
        strict: bool = config.INDEX_STRICT_VERIFY,
        timeout: float = config.INDEX_TOOL_TIMEOUT_SECONDS,
    ) -> None:
        if db_type not in INDEX_EXTENSIONS:
            raise ValueError(f"db_type must be one of {sorted(INDEX_EXTENSIONS)}")
        self.db_path = Path(db_path)
        self.fasta_file = Path(fasta_file)
        self.db_type = db_type
        self.title = title
        self.bin_dir = bin_dir
        self.strict = strict
        self.timeout = timeout

    @property
    def index_files(self) -> List[Path]:
        return [Path(f"{self.db_path}{ext}") for ext in INDEX_EXTENSIONS[self.db_type]]

    def missing_files(self) -> List[Path]:
        return [path for path in self.index_files if not path.is_file()]

    def verify(self) -> bool:
        """
        File presence is the primary signal. blastdbcmd -info is run afterwards;
        unless ``strict`` is set its failure is logged and the index is still accepted,
        since its exit status is unreliable on some platforms.
        """
        missing = self.missing_files()
        if missing:
            logger.info("Missing BLAST database files: %s", ", ".join(p.name for p in missing))
            return False

        args = [tool_path("blastdbcmd", self.bin_dir), "-db", str(self.db_path), "-info"]
        try:
            info = run_tool(args, timeout=self.timeout)
        except PipelineError as e:
            if self.strict:
                logger.error("BLAST database verification failed: %s", e)
                return False
            logger.warning("blastdbcmd check failed (%s); database files exist, accepting index", e)
            return True

        logger.info("BLAST database verified: %s", info.strip().splitlines()[0] if info.strip() else self.db_path)
        return True

    def build(self) -> None:
        if not self.fasta_file.is_file():
            raise SearchIndexError(f"FASTA file not found at {self.fasta_file}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        args = [
            tool_path("makeblastdb", self.bin_dir),
            "-in", str(self.fasta_file),
            "-dbtype", self.db_type,
            "-out", str(self.db_path),
            "-title", self.title,
            "-parse_seqids",
        ]
        logger.info("Creating BLAST database: %s", " ".join(args))
        try:
            run_tool(args, timeout=self.timeout)
        except PipelineError as e:
            raise SearchIndexError(f"Failed to create BLAST database: {e}") from e
        logger.info("BLAST database created at %s", self.db_path)

    def ensure_ready(self) -> bool:
        """Startup pre-flight: verify an existing index, otherwise build one and verify it."""
        if not self.missing_files() and self.verify():
            logger.info("BLAST database already present, skipping creation")
            return True

        logger.info("BLAST database not found or invalid, creating a new one")
        self.build()
        if not self.verify():
            raise SearchIndexError(f"BLAST database at {self.db_path} failed verification after build")
        return True

    def info(self) -> Dict[str, object]:
        return {
            "path": str(self.db_path),
            "type": self.db_type,
            "files_present": not self.missing_files(),
        }
