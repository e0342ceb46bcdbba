"""
Error taxonomy for the search service.

Only ValidationError crosses back to an API caller; the pipeline errors are
recorded on the job and MappingUnavailable never leaves the mapper.
"""
from typing import Iterable, List


class SearchError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(SearchError):
    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = list(messages)
        super().__init__(", ".join(self.messages))


class PipelineError(SearchError):
    """External tool missing, timed out, exited non-zero or wrote too much output."""


class ParseError(SearchError):
    """The aligner's XML output could not be read."""


class MappingUnavailable(SearchError):
    """The identity table could not be loaded."""


class SearchIndexError(SearchError):
    """The BLAST database could not be built or verified."""
