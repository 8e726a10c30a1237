"""
Multithreaded variants of the readers and writers.

Block inflate and deflate run on a concurrent.futures.ThreadPoolExecutor, the ctypes zlib calls release the GIL.
Output is always reassembled in virtual offset order. Pool size defaults to HTSEEK_THREADS.

Classes:
    Reader: Record reader with block prefetching.

Modules:
    bgzf: Block level Reader and Writer.
"""

from ..util import DEFAULT_THREADS, THREAD_NAME
from . import bgzf
from .reader import Reader
