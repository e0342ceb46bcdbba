"""
Runtime settings, read once from the environment.

Every component takes these as constructor defaults so tests can pass their own values.
"""
import os
import tempfile
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


# BLAST+ binaries; empty means "look them up on PATH"
BLAST_BIN_PATH = os.environ.get("BLAST_BIN_PATH", "")
BLAST_DB_PATH = Path(os.environ.get("BLAST_DB_PATH", str(ROOT_DIR / "blastdb" / "hsndb")))
BLAST_DB_TYPE = os.environ.get("BLAST_DB_TYPE", "prot")  # "prot" or "nucl"
BLAST_DB_TITLE = os.environ.get("BLAST_DB_TITLE", "HSNDB S-nitrosylated Proteins Database")
FASTA_FILE = Path(os.environ.get("FASTA_FILE", str(ROOT_DIR / "sequences.fasta")))
TEMP_DIR = Path(os.environ.get("TEMP_DIR", str(Path(tempfile.gettempdir()) / "hsndb-blast")))

BLAST_TIMEOUT_SECONDS = float(os.environ.get("BLAST_TIMEOUT_SECONDS", "300"))
BLAST_MAX_OUTPUT_MB = int(os.environ.get("BLAST_MAX_OUTPUT_MB", "50"))
BLAST_MAX_OUTPUT_BYTES = BLAST_MAX_OUTPUT_MB * 1024 * 1024
INDEX_TOOL_TIMEOUT_SECONDS = float(os.environ.get("INDEX_TOOL_TIMEOUT_SECONDS", "600"))
# When false, an index whose files exist is accepted even if blastdbcmd fails
INDEX_STRICT_VERIFY = _env_bool("INDEX_STRICT_VERIFY", False)

MAX_CONCURRENT_SEARCHES = int(os.environ.get("MAX_CONCURRENT_SEARCHES", str(os.cpu_count() or 2)))

# Job management
JOB_STORE_MAX_SIZE = int(os.environ.get("JOB_STORE_MAX_SIZE", "1000"))
JOB_CLEANUP_INTERVAL = float(os.environ.get("JOB_CLEANUP_INTERVAL", str(5 * 60)))
JOB_MAX_AGE = float(os.environ.get("JOB_MAX_AGE", str(60 * 60)))

# Validation
MIN_SEQUENCE_LENGTH = int(os.environ.get("MIN_SEQUENCE_LENGTH", "10"))
MAX_SEQUENCE_LENGTH = int(os.environ.get("MAX_SEQUENCE_LENGTH", "10000"))

# BLAST parameter defaults
DEFAULT_ALGORITHM = "blastp"
DEFAULT_EVALUE = 10.0
DEFAULT_MAX_TARGET_SEQS = 500
DEFAULT_MATRIX = "BLOSUM62"
DEFAULT_WORD_SIZE = {
    "blastp": 3,
    "blastn": 11,
    "blastx": 3,
    "tblastn": 3,
    "tblastx": 3,
}

# Identity table (Supabase / PostgREST)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
IDENTITY_TABLE = os.environ.get("IDENTITY_TABLE", "proteins")
IDENTITY_PAGE_SIZE = int(os.environ.get("IDENTITY_PAGE_SIZE", "1000"))
IDENTITY_REQUEST_TIMEOUT = float(os.environ.get("IDENTITY_REQUEST_TIMEOUT", "30"))

# Reference set metadata reported with every result
DATABASE_NAME = os.environ.get("DATABASE_NAME", "HSNDB")
DATABASE_VERSION = os.environ.get("DATABASE_VERSION", "2024.1")
DATABASE_TOTAL_SEQUENCES = int(os.environ.get("DATABASE_TOTAL_SEQUENCES", "4533"))

APP_VERSION = "1.0.0"
CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
