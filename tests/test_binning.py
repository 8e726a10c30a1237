from unittest import TestCase

from htseek.bgzf import RangeError
from htseek.binning import BIN_COUNT, MAX_BIN, MAX_POSITION, METADATA_BIN, bin_for_interval, candidate_bins, linear_window, \
    reg2bin, reg2bins


class TestBinning(TestCase):
    def test_constants(self):
        self.assertEqual(BIN_COUNT, 37449)
        self.assertEqual(MAX_BIN, 37448)
        self.assertEqual(METADATA_BIN, 37450)
        self.assertEqual(MAX_POSITION, 2 ** 29)

    def test_reg2bin(self):
        self.assertEqual(reg2bin(0, 1), 4681)
        self.assertEqual(reg2bin(0, 2 ** 14), 4681)
        self.assertEqual(reg2bin(2 ** 14, 2 ** 14 + 1), 4682)
        self.assertEqual(reg2bin(0, 2 ** 14 + 1), 585)
        self.assertEqual(reg2bin(0, 2 ** 17 + 1), 73)
        self.assertEqual(reg2bin(0, 2 ** 29), 0)
        self.assertEqual(reg2bin(MAX_POSITION - 1, MAX_POSITION), MAX_BIN)

    def test_bin_for_interval(self):
        self.assertEqual(bin_for_interval(100, 200), 4681)
        # Zero length intervals are one base long
        self.assertEqual(bin_for_interval(100, 100), 4681)
        self.assertEqual(bin_for_interval(2 ** 14, 2 ** 14), 4682)
        with self.assertRaises(RangeError):
            bin_for_interval(-1, 10)
        with self.assertRaises(RangeError):
            bin_for_interval(10, 5)
        with self.assertRaises(RangeError):
            bin_for_interval(0, MAX_POSITION + 1)

    def test_reg2bins(self):
        self.assertEqual(list(reg2bins(0, 1)), [0, 1, 9, 73, 585, 4681])
        self.assertEqual(list(reg2bins(2 ** 14 - 1, 2 ** 14 + 1)), [0, 1, 9, 73, 585, 4681, 4682])

    def test_candidate_bins(self):
        self.assertEqual(candidate_bins(0, 1), {0, 1, 9, 73, 585, 4681})
        bins = candidate_bins(0, MAX_POSITION)
        self.assertEqual(len(bins), BIN_COUNT)
        # Clamped to the indexable range
        self.assertEqual(candidate_bins(0, 2 ** 40), bins)
        for start, end in ((0, 1), (1000, 50000), (2 ** 20, 2 ** 20 + 5)):
            for position in (start, end - 1):
                self.assertIn(bin_for_interval(position, position + 1), candidate_bins(start, end))

    def test_linear_window(self):
        self.assertEqual(linear_window(0), 0)
        self.assertEqual(linear_window(2 ** 14 - 1), 0)
        self.assertEqual(linear_window(2 ** 14), 1)
