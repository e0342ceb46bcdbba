import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from blast_backend import config
from blast_backend.domain.errors import PipelineError
from blast_backend.domain.models import SearchParameters

logger = logging.getLogger(__name__)

# Programs that score with a substitution matrix
MATRIX_ALGORITHMS = frozenset({"blastp", "blastx", "tblastn", "tblastx"})

XML_OUTFMT = "5"


def tool_path(name: str, bin_dir: Union[str, Path] = config.BLAST_BIN_PATH) -> str:
    """Full path of a BLAST+ executable, or the bare name to resolve on PATH."""
    if not bin_dir:
        return name
    return str(Path(bin_dir) / name)


def build_blast_command(
    params: SearchParameters,
    *,
    query_path: Path,
    output_path: Path,
    db_path: Union[str, Path] = config.BLAST_DB_PATH,
    bin_dir: Union[str, Path] = config.BLAST_BIN_PATH,
) -> List[str]:
    """
    Argument list for one BLAST+ search writing XML (-outfmt 5) to output_path.
    """
    args = [
        tool_path(params.algorithm, bin_dir),
        "-query", str(query_path),
        "-db", str(db_path),
        "-evalue", f"{params.evalue:g}",
        "-max_target_seqs", str(params.max_target_seqs),
        "-outfmt", XML_OUTFMT,
        "-out", str(output_path),
    ]

    if params.matrix and params.algorithm in MATRIX_ALGORITHMS:
        args += ["-matrix", params.matrix]

    word_size = params.word_size or config.DEFAULT_WORD_SIZE.get(params.algorithm)
    if word_size:
        args += ["-word_size", str(word_size)]

    if params.gap_open is not None:
        args += ["-gapopen", str(params.gap_open)]
    if params.gap_extend is not None:
        args += ["-gapextend", str(params.gap_extend)]

    return args


def _with_stderr(message: str, stderr: Optional[bytes], limit: int = 2000) -> str:
    text = stderr.decode("utf-8", errors="replace").strip()[-limit:] if stderr else ""
    return f"{message}: {text}" if text else message


def run_tool(
    args: Sequence[str],
    *,
    timeout: float = config.BLAST_TIMEOUT_SECONDS,
    max_output_bytes: int = config.BLAST_MAX_OUTPUT_BYTES,
    output_path: Optional[Path] = None,
) -> str:
    """
    Run an external tool without a shell and return its stdout.

    Raises PipelineError when the executable is missing, the timeout expires,
    the exit code is non-zero, or stdout/stderr or the output file exceed
    ``max_output_bytes``. stderr is included in the error message.

    The size cap is checked after the process exits; the child is not killed
    when it crosses the limit. stdout and stderr are buffered in memory until
    then, which stays small because BLAST writes its report to ``-out``. The
    report file itself is measured on disk, never read here.
    """
    name = Path(args[0]).name
    try:
        proc = subprocess.run(list(args), capture_output=True, timeout=timeout, check=False)
    except FileNotFoundError as e:
        raise PipelineError(f"{name} executable not found: {args[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise PipelineError(_with_stderr(f"{name} timed out after {timeout:g} seconds", e.stderr)) from e
    except OSError as e:
        raise PipelineError(f"{name} could not be started: {e}") from e

    if len(proc.stdout) + len(proc.stderr) > max_output_bytes:
        raise PipelineError(f"{name} output exceeded {max_output_bytes} bytes")

    if proc.returncode != 0:
        raise PipelineError(_with_stderr(f"{name} failed with exit code {proc.returncode}", proc.stderr))

    if output_path is not None:
        if not output_path.exists():
            raise PipelineError(f"{name} did not produce {output_path.name}")
        size = output_path.stat().st_size
        if size > max_output_bytes:
            raise PipelineError(f"{name} output file is {size} bytes, limit is {max_output_bytes}")

    return proc.stdout.decode("utf-8", errors="replace")


class BlastAligner:
    """Runs BLAST+ searches against one on-disk database."""

    def __init__(
        self,
        db_path: Union[str, Path] = config.BLAST_DB_PATH,
        bin_dir: Union[str, Path] = config.BLAST_BIN_PATH,
        *,
        timeout: float = config.BLAST_TIMEOUT_SECONDS,
        max_output_bytes: int = config.BLAST_MAX_OUTPUT_BYTES,
    ) -> None:
        self.db_path = db_path
        self.bin_dir = bin_dir
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    def run(self, params: SearchParameters, query_path: Path, output_path: Path) -> None:
        args = build_blast_command(
            params,
            query_path=query_path,
            output_path=output_path,
            db_path=self.db_path,
            bin_dir=self.bin_dir,
        )
        logger.info("Executing %s", " ".join(args))
        run_tool(args, timeout=self.timeout, max_output_bytes=self.max_output_bytes, output_path=output_path)
