"""Utility functions for ff1agent."""

from ff1agent.utils.atomic_io import AtomicFileWriter, get_atomic_writer
from ff1agent.utils.helpers import canonical_json, ensure_dir, read_json_file, truncate
from ff1agent.utils.retry import RetryPolicy, is_rate_limit_error

__all__ = [
    "AtomicFileWriter",
    "RetryPolicy",
    "canonical_json",
    "ensure_dir",
    "get_atomic_writer",
    "is_rate_limit_error",
    "read_json_file",
    "truncate",
]
