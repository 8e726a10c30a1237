"""
Virtual file offsets.

A virtual offset addresses a byte of the decompressed stream as the pair (compressed offset of the containing block,
offset into that block's decompressed data). It is packed into an unsigned 64 bit integer:

    coffset << 16 | uoffset

The packed value orders the same way as the decompressed stream, so VirtualOffset is an int and compares, sorts,
hashes and serialises as one.
"""

import ctypes as C

from .util import RangeError

WITHIN_BLOCK_BITS = 16
BLOCK_START_BITS = 48

MAX_WITHIN_BLOCK = (1 << WITHIN_BLOCK_BITS) - 1
MAX_BLOCK_START = (1 << BLOCK_START_BITS) - 1
MAX_VIRTUAL_OFFSET = (1 << 64) - 1

SIZEOF_VIRTUAL_OFFSET = C.sizeof(C.c_uint64)


class VirtualOffset(int):
    """
    Represents a BGZF virtual file offset.
    """
    __slots__ = ()

    def __new__(cls, value=0):
        if not 0 <= value <= MAX_VIRTUAL_OFFSET:
            raise RangeError("Virtual offset out of range: {}".format(value))
        return super().__new__(cls, value)

    @classmethod
    def make(cls, block_start: int, within_block: int) -> 'VirtualOffset':
        """
        Pack a compressed block offset and an offset into the decompressed block.
        :param block_start: Offset of the first byte of the block in the compressed stream.
        :param within_block: Offset into the decompressed block data.
        :return: VirtualOffset instance.
        """
        if not 0 <= within_block <= MAX_WITHIN_BLOCK:
            raise RangeError("Within block offset out of range: {}".format(within_block))
        if not 0 <= block_start <= MAX_BLOCK_START:
            raise RangeError("Block start offset out of range: {}".format(block_start))
        return cls(block_start << WITHIN_BLOCK_BITS | within_block)

    @property
    def block_start(self) -> int:
        return int(self) >> WITHIN_BLOCK_BITS

    @property
    def within_block(self) -> int:
        return int(self) & MAX_WITHIN_BLOCK

    def pack(self) -> bytes:
        return int(self).to_bytes(SIZEOF_VIRTUAL_OFFSET, 'little', signed=False)

    @classmethod
    def from_bytes_le(cls, data) -> 'VirtualOffset':
        if len(data) != SIZEOF_VIRTUAL_OFFSET:
            raise RangeError("Virtual offsets are {} bytes, got {}".format(SIZEOF_VIRTUAL_OFFSET, len(data)))
        return cls(int.from_bytes(data, 'little', signed=False))

    def __repr__(self):
        return "VirtualOffset({}, {})".format(self.block_start, self.within_block)


make = VirtualOffset.make


def block_start(vo) -> int:
    return VirtualOffset(vo).block_start


def within_block(vo) -> int:
    return VirtualOffset(vo).within_block
