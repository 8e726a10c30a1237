"""
BGZF reader that inflates the blocks following the read position on a thread pool.
Blocks are handed back in file order, so reads, seeks and virtual offsets behave exactly as htseek.bgzf.reader.
"""

import io
import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor

from ...bgzf import reader
from ...util import DEFAULT_THREADS, THREAD_NAME

log = logging.getLogger(__name__)


class _Reader(reader._Reader):
    """
    Base class for buffer and stream readers.
    Keeps up to max_queued blocks inflating ahead of the current block.
    """

    def __init__(self, input, offset=0, threadpool: ThreadPoolExecutor = None, max_queued: int = None):
        """
        Constructor.
        :param input: Block data source.
        :param offset: Compressed offset of the first block to read.
        :param threadpool: Pool to inflate blocks on. An int or None creates a private pool of that many workers, DEFAULT_THREADS if None.
        :param max_queued: Number of blocks to inflate ahead, defaults to twice DEFAULT_THREADS.
        """
        super().__init__(input, offset)
        self._own_pool = not isinstance(threadpool, ThreadPoolExecutor)
        if self._own_pool:
            threadpool = ThreadPoolExecutor(max_workers=threadpool or DEFAULT_THREADS, thread_name_prefix=THREAD_NAME)
        self.pool = threadpool
        self.max_queued = max_queued or 2 * DEFAULT_THREADS
        self.blockqueue = deque()
        self._queue_next = None
        log.debug("Inflating up to %d blocks ahead", self.max_queued)

    def _clear(self):
        for _, _, future in self.blockqueue:
            future.cancel()
        self.blockqueue.clear()
        self._queue_next = None

    def _fill(self):
        while self._queue_next is not None and len(self.blockqueue) < self.max_queued:
            try:
                raw = self._read_raw(self._queue_next)
            except Exception as e:
                # Raised when the block is reached, not while prefetching
                future = Future()
                future.set_exception(e)
                self.blockqueue.append((self._queue_next, None, future))
                self._queue_next = None
                break
            if raw is None:
                self._queue_next = None
                break
            block, cdata = raw
            self.blockqueue.append((self._queue_next, block, self.pool.submit(block.inflate, cdata)))
            self._queue_next += len(block)

    def _read_block(self, coffset):
        queue = self.blockqueue
        # Skip forward through queued blocks, anything else invalidates the queue
        while queue and queue[0][0] < coffset:
            queue.popleft()[2].cancel()
        if queue and queue[0][0] != coffset:
            self._clear()
        if not queue:
            self._queue_next = coffset
            self._fill()
            if not queue:
                return None
        _, block, future = queue.popleft()
        self._fill()
        return block, future.result()

    def close(self):
        self._clear()
        if self._own_pool:
            self.pool.shutdown()
        super().close()


class StreamReader(_Reader, reader.StreamReader):
    """
    Implements _Reader to handle input data that is not accessible through a buffer interface.
    """
    pass


class BufferReader(_Reader, reader.BufferReader):
    """
    Implements _Reader to handle input data that is accessible through a buffer interface.
    """
    pass


def Reader(input, offset: int = 0, threadpool: ThreadPoolExecutor = None, max_queued: int = None) -> _Reader:
    """
    Factory to provide a unified reader interface.
    Resolves if input is randomly accessible and provides the appropriate _Reader implementation.
    :param input: A stream or buffer object.
    :param offset: Compressed offset of the first block. A stream is assumed to be positioned at offset.
    :param threadpool: Pool to inflate blocks on.
    :param max_queued: Number of blocks to inflate ahead.
    :return: An instance of StreamReader or BufferReader.
    """
    if isinstance(input, io.IOBase) or hasattr(input, 'read'):
        return StreamReader(input, offset, threadpool, max_queued)
    else:
        return BufferReader(input, offset, threadpool, max_queued)
