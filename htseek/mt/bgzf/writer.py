"""
BGZF writer that deflates full blocks on a thread pool.
Compressed blocks are written in submission order. tell() waits for pending blocks as the compressed offset of the
next block is only known once every preceding block is compressed.
"""

import io
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor

from ...bgzf import writer
from ...bgzf.block import compress_block
from ...util import DEFAULT_COMPRESSION_LEVEL, DEFAULT_THREADS, THREAD_NAME

log = logging.getLogger(__name__)


class _Writer(writer._Writer):
    def __init__(self, output, offset=0, level=DEFAULT_COMPRESSION_LEVEL, threadpool: ThreadPoolExecutor = None, max_queued: int = None):
        """
        Constructor.
        :param output: The buffer or stream to output compressed data.
        :param offset: The offset into output to begin writing.
        :param level: zlib compression level.
        :param threadpool: Pool to deflate blocks on. An int or None creates a private pool of that many workers, DEFAULT_THREADS if None.
        :param max_queued: Number of blocks allowed to be pending before write() waits, defaults to twice DEFAULT_THREADS.
        """
        super().__init__(output, offset, level)
        self._own_pool = not isinstance(threadpool, ThreadPoolExecutor)
        if self._own_pool:
            threadpool = ThreadPoolExecutor(max_workers=threadpool or DEFAULT_THREADS, thread_name_prefix=THREAD_NAME)
        self.pool = threadpool
        self.max_queued = max_queued or 2 * DEFAULT_THREADS
        self.results = deque()
        log.debug("Deflating up to %d blocks ahead", self.max_queued)

    def _flush_block(self, size):
        data = bytes(self._pending[:size])
        del self._pending[:size]
        self.total_in += len(data)
        self.results.append(self.pool.submit(compress_block, data, self.level))
        self._drain(self.max_queued)

    def _drain(self, keep=0):
        """
        Write out finished blocks in order.
        :param keep: Wait until no more than this many blocks are pending.
        """
        results = self.results
        while len(results) > keep or (results and results[0].done()):
            block = results.popleft().result()
            self._write_raw(block)
            self.offset += len(block)
            self.total_out += len(block)

    def tell(self):
        self._drain()
        return super().tell()

    def flush(self):
        self.finish_block()
        self._drain()
        super().flush()

    def finalize(self):
        if not self._finalized:
            self.finish_block()
            self._drain()
            super().finalize()
            if self._own_pool:
                self.pool.shutdown()


class BufferWriter(_Writer, writer.BufferWriter):
    """
    Implements _Writer to output to a randomly accessible buffer interface.
    """
    pass


class StreamWriter(_Writer, writer.StreamWriter):
    """
    Implements _Writer to output to a stream.
    """
    pass


def Writer(output, offset=0, level=DEFAULT_COMPRESSION_LEVEL, threadpool: ThreadPoolExecutor = None, max_queued: int = None) -> _Writer:
    """
    Factory to provide a unified writer interface.
    Resolves if output is randomly accessible and provides the appropriate _Writer implementation.
    :param output: A stream or buffer object.
    :param offset: If output is a buffer, the offset into the buffer to begin writing. Otherwise the number of bytes
    already written to the stream.
    :param level: zlib compression level.
    :param threadpool: Pool to deflate blocks on.
    :param max_queued: Number of blocks allowed to be pending.
    :return: An instance of StreamWriter or BufferWriter.
    """
    if isinstance(output, io.IOBase) or hasattr(output, 'write'):
        return StreamWriter(output, offset, level, threadpool, max_queued)
    else:
        return BufferWriter(output, offset, level, threadpool, max_queued)
