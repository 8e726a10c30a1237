from unittest import TestCase

from htseek.bgzf import RangeError, VirtualOffset
from htseek.bgzf.virtual_offset import MAX_BLOCK_START, MAX_WITHIN_BLOCK, block_start, make, within_block


class TestVirtualOffset(TestCase):
    def test_make(self):
        vo = make(3, 7)
        self.assertEqual(vo, 3 << 16 | 7)
        self.assertEqual(vo.block_start, 3)
        self.assertEqual(vo.within_block, 7)
        self.assertEqual(block_start(vo), 3)
        self.assertEqual(within_block(int(vo)), 7)
        self.assertEqual(make(MAX_BLOCK_START, MAX_WITHIN_BLOCK), 2 ** 64 - 1)

    def test_range(self):
        with self.assertRaises(RangeError):
            make(0, MAX_WITHIN_BLOCK + 1)
        with self.assertRaises(RangeError):
            make(MAX_BLOCK_START + 1, 0)
        with self.assertRaises(RangeError):
            make(-1, 0)
        with self.assertRaises(RangeError):
            VirtualOffset(2 ** 64)

    def test_order(self):
        offsets = [make(10, 0), make(0, 65535), make(10, 1), make(0, 0)]
        self.assertEqual(sorted(offsets), [make(0, 0), make(0, 65535), make(10, 0), make(10, 1)])
        self.assertLess(make(0, 65535), make(1, 0))

    def test_pack(self):
        vo = make(0x123456, 0x789a)
        data = vo.pack()
        self.assertEqual(data, (0x123456 << 16 | 0x789a).to_bytes(8, 'little'))
        self.assertEqual(VirtualOffset.from_bytes_le(data), vo)
        with self.assertRaises(RangeError):
            VirtualOffset.from_bytes_le(data[:7])

    def test_repr(self):
        self.assertEqual(repr(make(5, 6)), "VirtualOffset(5, 6)")
