"""Observability helpers."""

from cogcommit.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_ingestion,
    record_parser_failure,
    record_malformed_lines,
    record_commit_closed,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_ingestion",
    "record_parser_failure",
    "record_malformed_lines",
    "record_commit_closed",
]
