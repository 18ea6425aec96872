"""
Tests for long/wide conversion and table reading.
"""

import numpy as np
import pandas as pd
import pytest

from pyposterior.core.exceptions import MalformedInputError, ValidationError
from pyposterior.data import read_table, to_long, to_wide


@pytest.fixture
def wide():
    return pd.DataFrame({
        'subject': ['s2', 's1', 's3'],
        'week0': [1.0, 2.0, 3.0],
        'week1': [1.5, 2.5, 3.5],
        'week2': [1.7, 2.9, 3.1],
    })


class TestToLong:

    def test_unit_major_order(self, wide):
        long = to_long(wide, 'subject', time_name='week', value_name='y')
        assert list(long.columns) == ['subject', 'week', 'y']
        assert len(long) == 9
        assert list(long['subject'][:3]) == ['s2', 's2', 's2']
        assert list(long['week'][:3]) == ['week0', 'week1', 'week2']
        np.testing.assert_allclose(long['y'][:3], [1.0, 1.5, 1.7])

    def test_explicit_time_cols(self, wide):
        long = to_long(wide, 'subject', ['week2', 'week0'])
        assert list(long['time'][:2]) == ['week2', 'week0']
        assert len(long) == 6

    def test_dropna(self, wide):
        wide.loc[1, 'week1'] = np.nan
        assert len(to_long(wide, 'subject')) == 8
        assert len(to_long(wide, 'subject', dropna=False)) == 9

    def test_missing_id(self, wide):
        with pytest.raises(MalformedInputError) as exc:
            to_long(wide, 'patient')
        assert exc.value.column == 'patient'

    def test_missing_time_column(self, wide):
        with pytest.raises(MalformedInputError, match="week9"):
            to_long(wide, 'subject', ['week0', 'week9'])

    def test_duplicate_ids(self, wide):
        wide.loc[2, 'subject'] = 's1'
        with pytest.raises(MalformedInputError) as exc:
            to_long(wide, 'subject')
        assert exc.value.key == 's1'


class TestToWide:

    def test_duplicate_cell_rejected(self):
        long = pd.DataFrame({'id': ['a', 'a'], 't': [0, 0], 'y': [1.0, 2.0]})
        with pytest.raises(MalformedInputError, match="more than one observation"):
            to_wide(long, 'id', 't', 'y')

    def test_missing_cells_are_nan(self):
        long = pd.DataFrame({'id': ['a', 'a', 'b'], 't': [0, 1, 0], 'y': [1.0, 2.0, 3.0]})
        wide = to_wide(long, 'id', 't', 'y')
        assert list(wide['id']) == ['a', 'b']
        assert np.isnan(wide.loc[1, 1])


class TestRoundTrip:

    def test_long_wide_long_is_identity(self, repeated_measures):
        long = repeated_measures[['subject', 'time', 'y']]
        wide = to_wide(long, 'subject', 'time', 'y')
        back = to_long(wide, 'subject', time_name='time', value_name='y')
        pd.testing.assert_frame_equal(back, long.reset_index(drop=True), check_dtype=False)

    def test_wide_long_wide_is_identity(self, wide):
        back = to_wide(to_long(wide, 'subject'), 'subject', 'time', 'value')
        pd.testing.assert_frame_equal(back, wide, check_dtype=False)


class TestReadTable:

    def test_csv(self, tmp_path, wide):
        path = tmp_path / "scores.csv"
        wide.to_csv(path, index=False)
        pd.testing.assert_frame_equal(read_table(path), wide)

    def test_tsv(self, tmp_path, wide):
        path = tmp_path / "scores.tsv"
        wide.to_csv(path, index=False, sep='\t')
        pd.testing.assert_frame_equal(read_table(path), wide)

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValidationError, match="Unknown file format"):
            read_table(tmp_path / "scores.xlsx")
