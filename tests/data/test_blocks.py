"""
Tests for correlation block partitioning.
"""

import numpy as np
import pandas as pd
import pytest

from pyposterior.core.exceptions import MalformedInputError
from pyposterior.data import block_bounds, correlation_blocks


class TestCorrelationBlocks:

    def test_partition_covers_rows_once(self, repeated_measures):
        blocks = correlation_blocks(repeated_measures, 'subject')
        assert len(blocks) == 6
        covered = np.concatenate([np.arange(b.first, b.last) for b in blocks])
        np.testing.assert_array_equal(covered, np.arange(len(repeated_measures)))
        assert all(b.length == 4 for b in blocks)

    def test_order_preserved(self, repeated_measures):
        blocks = correlation_blocks(repeated_measures, 'subject')
        assert [b.key for b in blocks] == [f"s{i}" for i in range(6)]
        assert all(a.last == b.first for a, b in zip(blocks, blocks[1:]))

    def test_composite_key(self):
        df = pd.DataFrame({'site': [1, 1, 1, 2], 'subject': ['a', 'a', 'b', 'a']})
        blocks = correlation_blocks(df, ['site', 'subject'])
        assert [b.key for b in blocks] == [(1, 'a'), (1, 'b'), (2, 'a')]
        assert [b.length for b in blocks] == [2, 1, 1]

    def test_bounds(self, repeated_measures):
        first, last = block_bounds(correlation_blocks(repeated_measures, 'subject'))
        np.testing.assert_array_equal(first, [0, 4, 8, 12, 16, 20])
        np.testing.assert_array_equal(last - first, [4] * 6)

    def test_empty_frame_is_zero_length_block(self):
        with pytest.raises(MalformedInputError, match="zero-length"):
            correlation_blocks(pd.DataFrame({'subject': []}), 'subject')

    def test_non_contiguous(self):
        df = pd.DataFrame({'subject': ['a', 'b', 'a']})
        with pytest.raises(MalformedInputError) as exc:
            correlation_blocks(df, 'subject')
        assert exc.value.key == 'a'

    def test_missing_key_column(self, repeated_measures):
        with pytest.raises(MalformedInputError) as exc:
            correlation_blocks(repeated_measures, 'patient')
        assert exc.value.column == 'patient'

    def test_missing_key_value(self):
        df = pd.DataFrame({'subject': ['a', None, 'b']})
        with pytest.raises(MalformedInputError, match="missing values"):
            correlation_blocks(df, 'subject')
