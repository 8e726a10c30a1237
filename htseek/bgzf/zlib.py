"""
Provides a basic wrapper for the zlib library.

This uses ctypes to load the zlib dll from the system.
If this is run on a Windows system and ctypes.util.find() can not find zlibwapi.dll it will look in the folder this
code is stored in.

Only raw (headerless) deflate streams are produced and consumed, BGZF supplies its own gzip framing.
ctypes releases the GIL for the duration of each foreign call so these functions can be run from worker threads.
"""

import ctypes as C
import platform
from ctypes import util

# Special thanks to Mark Nottingham https://gist.github.com/mnot/242459
# and the zlib example source for reference implementations.

# Constants taken from zlib.h
MAX_WBITS = 15

# Allowed flush values; see deflate() and inflate()
Z_NO_FLUSH = 0
Z_PARTIAL_FLUSH = 1
Z_SYNC_FLUSH = 2
Z_FULL_FLUSH = 3
Z_FINISH = 4

# Return codes for the compression/decompression functions. Negative values
# are errors, positive values are used for special but normal events.
Z_OK = 0
Z_STREAM_END = 1
Z_NEED_DICT = 2
Z_ERRNO = -1
Z_STREAM_ERROR = -2
Z_DATA_ERROR = -3
Z_MEM_ERROR = -4
Z_BUF_ERROR = -5
Z_VERSION_ERROR = -6

# compression levels
Z_NO_COMPRESSION = 0
Z_BEST_SPEED = 1
Z_BEST_COMPRESSION = 9
Z_DEFAULT_COMPRESSION = -1

# compression strategy; see deflateInit2()
Z_DEFAULT_STRATEGY = 0

# The deflate compression method (the only one supported in this version)
Z_DEFLATED = 8

DEFAULT_MEMLEVEL = 8


def _load_library():
    if platform.system() == 'Windows':
        path = util.find_library("zlib1.dll")
        if not path:
            import os

            path = os.path.join(os.path.dirname(os.path.realpath(__file__)), 'zlibwapi.dll')
        return C.windll.LoadLibrary(path)
    for name in (util.find_library("z"), "libz.so.1", "libz.dylib"):
        if not name:
            continue
        try:
            return C.cdll.LoadLibrary(name)
        except OSError:
            continue
    raise ImportError("Unable to locate the zlib shared library.")


_zlib = _load_library()


class zState(C.Structure):
    """
    Represents the zlib internal state object used during inflate and deflate
    :ivar next_in: C._Pointer   next input byte
    :ivar avail_in: C.c_uint    number of bytes available at next_in
    :ivar total_in: C.c_ulong   total number of input bytes read so far
    :ivar next_out: C._Pointer  next output byte will go here
    :ivar avail_out: C.c_uint   remaining free space at next_out
    :ivar total_out: C.c_ulong  total number of bytes output so far
    :ivar msg: C.c_char_p       last error message, NULL if no error
    :ivar state: C.c_void_p     not visible by applications
    :ivar zalloc: C.c_void_p    used to allocate the internal state
    :ivar zfree: C.c_void_p     used to free the internal state
    :ivar opaque: C.c_void_p    private data object passed to zalloc and zfree
    :ivar data_type: C.c_int    best guess about the data type: binary or text
    :ivar adler: C.c_ulong      Adler-32 or CRC-32 value of the uncompressed data
    :ivar reserved: C.c_ulong   reserved for future use
    """
    _fields_ = [
        ("next_in", C.POINTER(C.c_ubyte)),
        ("avail_in", C.c_uint),
        ("total_in", C.c_ulong),
        ("next_out", C.POINTER(C.c_ubyte)),
        ("avail_out", C.c_uint),
        ("total_out", C.c_ulong),
        ("msg", C.c_char_p),
        ("state", C.c_void_p),
        ("zalloc", C.c_void_p),
        ("zfree", C.c_void_p),
        ("opaque", C.c_void_p),
        ("data_type", C.c_int),
        ("adler", C.c_ulong),
        ("reserved", C.c_ulong),
    ]


SIZEOF_ZSTATE = C.sizeof(zState)
_STATE_PTR = C.POINTER(zState)
_BYTE_PTR = C.POINTER(C.c_ubyte)

_zlib.zlibVersion.restype = C.c_char_p
_zlib.deflateInit2_.argtypes = [_STATE_PTR, C.c_int, C.c_int, C.c_int, C.c_int, C.c_int, C.c_char_p, C.c_int]
_zlib.deflateInit2_.restype = C.c_int
_zlib.deflate.argtypes = [_STATE_PTR, C.c_int]
_zlib.deflate.restype = C.c_int
_zlib.deflateEnd.argtypes = [_STATE_PTR]
_zlib.deflateEnd.restype = C.c_int
_zlib.inflateInit2_.argtypes = [_STATE_PTR, C.c_int, C.c_char_p, C.c_int]
_zlib.inflateInit2_.restype = C.c_int
_zlib.inflate.argtypes = [_STATE_PTR, C.c_int]
_zlib.inflate.restype = C.c_int
_zlib.inflateEnd.argtypes = [_STATE_PTR]
_zlib.inflateEnd.restype = C.c_int
_zlib.crc32.argtypes = [C.c_ulong, _BYTE_PTR, C.c_uint]
_zlib.crc32.restype = C.c_ulong

ZLIB_VERSION = _zlib.zlibVersion()
"""bytes: Version string reported by the loaded library, passed back to the *Init2_ functions."""


def as_array(data) -> C.Array:
    """
    Present a bytes-like object as a ctypes unsigned byte array.
    ctypes arrays are passed through, anything else is copied.
    :param data: bytes, bytearray, memoryview or ctypes array.
    :return: ctypes array of c_ubyte.
    """
    if isinstance(data, C.Array):
        return data
    return (C.c_ubyte * len(data)).from_buffer_copy(data)


def raw_compress(src, dest, level=Z_DEFAULT_COMPRESSION, wbits=MAX_WBITS, memlevel=DEFAULT_MEMLEVEL) -> (int, int):
    """
    Wraps zlib.deflate().
    Compresses all of src into dest in a single Z_FINISH call.
    :param src: Data buffer to compress.
    :param dest: ctypes array that receives the raw deflate stream.
    :param level: zlib algorithm compression level from 0-9. Pass -1 for zlib default.
    :param wbits: Compression window bit size. Defaults to MAX_WBITS, do not change unless you REALLY know what you are doing.
    :param memlevel: zlib memory usage level. See zlib documentation for more.
    :return: Tuple containing (zlib return code, number of bytes written to dest). Z_STREAM_END indicates success.
    """
    src = as_array(src)
    state = zState()
    state.next_in = C.cast(src, _BYTE_PTR)
    state.avail_in = len(src)
    state.next_out = C.cast(dest, _BYTE_PTR)
    state.avail_out = len(dest)

    err = _zlib.deflateInit2_(C.byref(state), level, Z_DEFLATED, -wbits, memlevel, Z_DEFAULT_STRATEGY, ZLIB_VERSION, SIZEOF_ZSTATE)
    if err != Z_OK:
        return err, 0
    try:
        err = _zlib.deflate(C.byref(state), Z_FINISH)
    finally:
        _zlib.deflateEnd(C.byref(state))
    return err, state.total_out


def raw_decompress(src, dest, wbits=MAX_WBITS) -> (int, int, int):
    """
    Wraps zlib.inflate().
    Decompresses src into dest in a single Z_FINISH call.
    :param src: Raw deflate stream.
    :param dest: ctypes array that receives the decompressed data.
    :param wbits: Compression window bit size. Defaults to MAX_WBITS, do not change unless you REALLY know what you are doing.
    :return: Tuple containing (zlib return code, bytes written to dest, unconsumed bytes of src).
    """
    src = as_array(src)
    state = zState()
    state.next_in = C.cast(src, _BYTE_PTR)
    state.avail_in = len(src)
    state.next_out = C.cast(dest, _BYTE_PTR)
    state.avail_out = len(dest)

    err = _zlib.inflateInit2_(C.byref(state), -wbits, ZLIB_VERSION, SIZEOF_ZSTATE)
    if err != Z_OK:
        return err, 0, len(src)
    try:
        err = _zlib.inflate(C.byref(state), Z_FINISH)
    finally:
        _zlib.inflateEnd(C.byref(state))
    return err, state.total_out, state.avail_in


def crc32(src, crc=0) -> int:
    """
    Calculate the CRC32 value of the input data.
    :param src: Buffer containing input data to evaluate.
    :param crc: Existing CRC to add to.
    :return: CRC32 value of src.
    """
    if not len(src):
        return crc
    src = as_array(src)
    return _zlib.crc32(crc, src, len(src))
