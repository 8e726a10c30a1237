"""
Record reader inflating blocks on a thread pool.
"""

from concurrent.futures import ThreadPoolExecutor

from . import bgzf
from .. import reader


class Reader(reader.Reader):
    """
    htseek.reader.Reader backed by a prefetching block reader.
    Records and query results are identical to the single threaded reader.
    """

    def __init__(self, input, codec=None, index=None, offset=0, threadpool: ThreadPoolExecutor = None, max_queued: int = None):
        self.pool = threadpool
        self.max_queued = max_queued
        super().__init__(input, codec, index, offset)

    def _open_stream(self, input, offset):
        return bgzf.Reader(input, offset, self.pool, self.max_queued)
