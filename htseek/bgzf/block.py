import ctypes as C
from enum import IntFlag

from . import zlib
from .util import EMPTY_BLOCK, MAX_BLOCK_SIZE, MAX_DATA_SIZE, ChecksumError, FormatError, OversizeError, TruncatedError
from ..util import DEFAULT_COMPRESSION_LEVEL

SIZEOF_UINT16 = C.sizeof(C.c_uint16)
FIXED_XLEN_HEADER = b'\x1f\x8b\x08\x04\x00\x00\x00\x00\x00\xff\x06\x00\x42\x43\x02\x00'
ID1, ID2 = 31, 139
BC = b'BC'


# Taken from gzip spec
class BlockFlags(IntFlag):
    FTEXT = 1 << 0
    FHCRC = 1 << 1
    FEXTRA = 1 << 2
    FNAME = 1 << 3
    FCOMMENT = 1 << 4
    reserved1 = 1 << 5
    reserved2 = 1 << 6
    reserved3 = 1 << 7


class Header(C.LittleEndianStructure):
    """
    Represents BGZF/GZIP block header.
    """
    _pack_ = 1
    _fields_ = [
        ("id1", C.c_uint8),  # ID1   gzip IDentifier1            uint8 31
        ("id2", C.c_uint8),  # ID2   gzip IDentifier2            uint8 139
        ("compression_method", C.c_uint8),  # CM    gzip Compression Method     uint8 8
        ("flag", C.c_uint8),  # FLG   gzip FLaGs                  uint8 4
        ("modification_time", C.c_uint32),  # MTIME gzip Modification TIME      uint32
        ("extra_flags", C.c_uint8),  # XFL   gzip eXtra FLags            uint8
        ("os", C.c_uint8),  # OS    gzip Operating System       uint8
        ("extra_length", C.c_uint16)  # XLEN  gzip eXtra LENgth           uint16
    ]


SIZEOF_HEADER = C.sizeof(Header)


class SubField(C.LittleEndianStructure):
    """
    Represents a BGZF/GZIP block subfield header.
    """
    _pack_ = 1
    _fields_ = [
        ("SI1", C.c_uint8),  # SI1 Subfield Identifier1        uint8 66
        ("SI2", C.c_uint8),  # SI2 Subfield Identifier2        uint8 67
        ("SLEN", C.c_uint16)  # SLEN Subfield LENgth uint16 t 2
    ]


SIZEOF_SUBFIELD = C.sizeof(SubField)


class Trailer(C.LittleEndianStructure):
    """
    Represents BGZF/GZIP block trailer.
    """
    _pack_ = 1
    _fields_ = [
        ("crc32", C.c_uint32),  # CRC32 CRC-32                      uint32
        ("uncompressed_size", C.c_uint32)  # ISIZE Input SIZE (length of uncompressed data) uint32
    ]


SIZEOF_TRAILER = C.sizeof(Trailer)
SIZEOF_FIXED_HEADER = len(FIXED_XLEN_HEADER) + SIZEOF_UINT16
MAX_CDATA_SIZE = MAX_BLOCK_SIZE - SIZEOF_FIXED_HEADER - SIZEOF_TRAILER


class Block:
    """
    Represents BGZF/GZIP block.
    """
    __slots__ = '_header', 'extra_fields', '_trailer', 'size'

    def __init__(self, header: Header, extra_fields: dict, trailer: Trailer):
        """
        Constructor.
        :param header: Header object instance.
        :param extra_fields: Dictionary of extra fields keyed by the two byte identifier.
        :param trailer: Trailer object instance.
        """
        self._header = header
        self.extra_fields = extra_fields
        self.size = Block._getSize(extra_fields)
        self._trailer = trailer
        if self.size < SIZEOF_HEADER + header.extra_length + SIZEOF_TRAILER:
            raise FormatError("Block size {} is smaller than its header and trailer.".format(self.size))

    @property
    def id(self):
        return (self._header.id1, self._header.id2)

    @property
    def compression_method(self):
        return self._header.compression_method

    @property
    def flags(self):
        return BlockFlags(self._header.flag)

    @property
    def modification_time(self):
        return self._header.modification_time

    @property
    def extra_flags(self):
        return self._header.extra_flags

    @property
    def os(self):
        return self._header.os

    @property
    def extra_length(self):
        return self._header.extra_length

    @property
    def cdata_offset(self) -> int:
        """Offset of the compressed data relative to the first block byte."""
        return SIZEOF_HEADER + self._header.extra_length

    @property
    def crc32(self):
        return self._trailer.crc32

    @property
    def uncompressed_size(self):
        return self._trailer.uncompressed_size

    def __len__(self):
        return self.size

    def inflate(self, cdata) -> bytes:
        """
        Decompress the block payload and verify it against the trailer.
        :param cdata: Compressed data as returned by from_buffer() or from_stream().
        :return: Bytes object containing the decompressed payload.
        """
        isize = self.uncompressed_size
        # One spare byte so that a stream inflating past ISIZE is detected rather than truncated.
        dest = (C.c_ubyte * (isize + 1))()
        err, size, unused = zlib.raw_decompress(cdata, dest)
        if err != zlib.Z_STREAM_END or unused:
            raise ChecksumError("Corrupt compressed data (zlib code: {}).".format(err))
        if size != isize:
            raise ChecksumError("Block inflated to {} bytes, trailer declares {}.".format(size, isize))
        data = bytes(memoryview(dest)[:size])
        if zlib.crc32(data) != self.crc32:
            raise ChecksumError("CRC32 mismatch in block payload.")
        return data

    @staticmethod
    def _parseHeader(buffer) -> Header:
        header = Header.from_buffer_copy(buffer)
        if header.id1 != ID1 or header.id2 != ID2:
            raise FormatError("Invalid block header found: ID1: {} ID2: {}".format(header.id1, header.id2))
        if header.compression_method != zlib.Z_DEFLATED:
            raise FormatError("Unsupported compression method: {}".format(header.compression_method))
        if not header.flag & BlockFlags.FEXTRA:
            raise FormatError("Block header is missing the extra field flag.")
        return header

    @staticmethod
    def _checkTrailer(trailer: Trailer):
        if trailer.uncompressed_size > MAX_DATA_SIZE:
            raise FormatError("Block declares {} uncompressed bytes, maximum is {}.".format(trailer.uncompressed_size, MAX_DATA_SIZE))

    @staticmethod
    def from_buffer(buffer, offset=0) -> ('Block', memoryview):
        """
        Load a block from a buffer.
        This references the buffer data and does not copy in memory.
        :param buffer: Buffer to read from.
        :param offset: Offset into buffer pointing to first block byte.
        :return: Tuple containing: (Block instance, memoryview containing compressed block data).
        """
        start = offset
        buffer = memoryview(buffer)
        buffer_len = len(buffer)
        if buffer_len - offset < SIZEOF_HEADER:
            raise TruncatedError("Data ends inside a block header.")
        header = Block._parseHeader(buffer[offset: offset + SIZEOF_HEADER])

        # Parse extra fields
        offset += SIZEOF_HEADER
        if buffer_len - offset < header.extra_length:
            raise TruncatedError("Data ends inside a block header.")
        extra_fields = Block._parseExtra(buffer[offset: offset + header.extra_length])
        offset += header.extra_length

        block_size = Block._getSize(extra_fields)
        if block_size < SIZEOF_HEADER + header.extra_length + SIZEOF_TRAILER:
            raise FormatError("Block size is smaller than its header and trailer.")
        if buffer_len - start < block_size:
            raise TruncatedError("Block declares {} bytes, only {} available.".format(block_size, buffer_len - start))
        trailer_start = start + block_size - SIZEOF_TRAILER
        trailer = Trailer.from_buffer_copy(buffer[trailer_start: trailer_start + SIZEOF_TRAILER])
        Block._checkTrailer(trailer)

        return Block(header, extra_fields, trailer), buffer[offset: trailer_start]

    @staticmethod
    def from_stream(stream) -> ('Block', memoryview):
        """
        Load a block from a stream.
        This copies the stream data into memory.
        :param stream: Stream to read from.
        :return: Tuple containing: (Block instance, memoryview containing compressed block data) or None if the stream
        is exhausted before the first header byte.
        """
        header_buffer = stream.read(SIZEOF_HEADER)
        if not header_buffer:
            return None
        if len(header_buffer) < SIZEOF_HEADER:
            raise TruncatedError("Data ends inside a block header.")
        header = Block._parseHeader(header_buffer)

        extra_fields_buffer = _read_exact(stream, header.extra_length)
        extra_fields = Block._parseExtra(extra_fields_buffer)

        data_size = Block._getSize(extra_fields) - SIZEOF_HEADER - SIZEOF_TRAILER - header.extra_length
        if data_size < 0:
            raise FormatError("Block size is smaller than its header and trailer.")
        cdata = memoryview(_read_exact(stream, data_size))

        trailer = Trailer.from_buffer_copy(_read_exact(stream, SIZEOF_TRAILER))
        Block._checkTrailer(trailer)

        return Block(header, extra_fields, trailer), cdata

    @staticmethod
    def _parseExtra(buffer) -> dict:
        """
        Parse GZIP formatted extra data fields into dictionary.
        :param buffer: Buffer containing extra field data.
        :return: Dict containing field values keyed on two byte field identifier.
        """
        extraFields = {}
        fieldOffset = 0
        buffer_len = len(buffer)
        while fieldOffset < buffer_len:
            if buffer_len - fieldOffset < SIZEOF_SUBFIELD:
                raise FormatError("Extra field subfield header overruns XLEN.")
            field = SubField.from_buffer_copy(buffer[fieldOffset: fieldOffset + SIZEOF_SUBFIELD])
            fieldStart = fieldOffset + SIZEOF_SUBFIELD
            if fieldStart + field.SLEN > buffer_len:
                raise FormatError("Extra field subfield data overruns XLEN.")
            extraFields[bytes((field.SI1, field.SI2))] = bytes(buffer[fieldStart: fieldStart + field.SLEN])
            fieldOffset = fieldStart + field.SLEN
        return extraFields

    @staticmethod
    def _getSize(extra_fields) -> int:
        """
        Helper to parse BGZF block size subfield.
        :param extra_fields: Dict returned from _parseExtra().
        :return: Total size of block.
        """
        # Load BGZF required BC field
        size = extra_fields.get(BC)
        if size is None or len(size) != SIZEOF_UINT16:
            raise FormatError("Missing block size field.")
        return int.from_bytes(size, byteorder='little', signed=False) + 1


def _read_exact(stream, size) -> bytes:
    data = stream.read(size) if size else b''
    if len(data) < size:
        raise TruncatedError("Data ends inside a block, expected {} more bytes got {}.".format(size, len(data)))
    return data


def compress_block(data, level=DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """
    Compress a payload into a single, independently decompressible block.
    Data that does not compress into a block at the requested level is stored uncompressed.
    :param data: Payload of at most MAX_DATA_SIZE bytes.
    :param level: zlib compression level.
    :return: Bytes object containing the complete block.
    """
    data_len = len(data)
    if data_len > MAX_DATA_SIZE:
        raise OversizeError("Block payload is {} bytes, maximum is {}.".format(data_len, MAX_DATA_SIZE))

    buffer = bytearray(MAX_BLOCK_SIZE)
    cdata = (C.c_ubyte * MAX_CDATA_SIZE).from_buffer(buffer, SIZEOF_FIXED_HEADER)
    res, cdata_len = zlib.raw_compress(data, cdata, level)
    if res != zlib.Z_STREAM_END and level != zlib.Z_NO_COMPRESSION:
        res, cdata_len = zlib.raw_compress(data, cdata, zlib.Z_NO_COMPRESSION)
    del cdata
    if res != zlib.Z_STREAM_END:
        raise OversizeError("Payload of {} bytes does not fit a single block (zlib code: {}).".format(data_len, res))

    size = SIZEOF_FIXED_HEADER + cdata_len + SIZEOF_TRAILER
    buffer[:len(FIXED_XLEN_HEADER)] = FIXED_XLEN_HEADER
    buffer[len(FIXED_XLEN_HEADER):SIZEOF_FIXED_HEADER] = (size - 1).to_bytes(SIZEOF_UINT16, 'little', signed=False)
    buffer[size - SIZEOF_TRAILER:size] = bytes(Trailer(zlib.crc32(data), data_len))
    return bytes(buffer[:size])


def decompress_block(data, offset=0) -> (bytes, int):
    """
    Decompress the block starting at offset.
    :param data: Buffer containing at least one complete block.
    :param offset: Offset of the first block byte.
    :return: Tuple containing (decompressed payload, number of bytes the block occupies).
    """
    block, cdata = Block.from_buffer(data, offset)
    return block.inflate(cdata), len(block)


def is_terminator(data) -> bool:
    """
    Helper to determine if a block is the empty EOF marker block.
    :param data: Bytes of a single block.
    :return: True if data matches the EOF marker exactly.
    """
    return bytes(data) == EMPTY_BLOCK
