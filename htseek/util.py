"""
Errors and configuration shared by the record, index and query layers.

Configuration is read from the environment once at import:
    HTSEEK_CACHEJIT: Cache numba compiled kernels on disk. Default False.
    HTSEEK_THREADS: Default worker pool size used by htseek.mt. Default is the CPU affinity count.
    HTSEEK_COMPRESSION_LEVEL: zlib level used when writing blocks. Default 6.
"""

import os


def _env_flag(name, default=False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in ('y', 'yes', 't', 'true', 'on', '1'):
        return True
    if value in ('n', 'no', 'f', 'false', 'off', '0', ''):
        return False
    raise ValueError("Invalid truth value for {}: {!r}".format(name, value))


def _env_int(name, default) -> int:
    value = os.getenv(name)
    return int(value) if value else default


CACHE_JIT = _env_flag('HTSEEK_CACHEJIT')
"""bool: Cache numba compiled kernels between runs."""

DEFAULT_THREADS = _env_int('HTSEEK_THREADS', len(os.sched_getaffinity(0)) if hasattr(os, 'sched_getaffinity') else os.cpu_count())
"""int: Default worker count for the multithreaded readers and writers."""

DEFAULT_COMPRESSION_LEVEL = _env_int('HTSEEK_COMPRESSION_LEVEL', 6)
"""int: zlib compression level used for new blocks."""

THREAD_NAME = 'HTSEEK_WORKER'


class HTSeekError(Exception):
    """
    Mix-in shared by every error raised by this package.
    """
    pass


class UnsortedInputError(HTSeekError, ValueError):
    """
    Exception to indicate records were appended out of coordinate order.
    """
    pass


class UnknownReferenceError(HTSeekError, LookupError):
    """
    Exception to indicate a query named a reference sequence that has no index entry.
    """
    pass


class IndexMissingError(HTSeekError, LookupError):
    """
    Exception to indicate a region query was attempted without an index.
    Callers may fall back to Reader.scan().
    """
    pass
