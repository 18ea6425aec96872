"""
Tests for prepare() and DataPayload.
"""

import numpy as np
import pandas as pd
import pytest

from pyposterior.core.capabilities import (
    CAPABILITY_BLOCKED,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
    CAPABILITY_MATERIALIZED,
)
from pyposterior.core.exceptions import MalformedInputError, ValidationError
from pyposterior.core.protocols import DataSource
from pyposterior.data import DataPayload, prepare


class TestPrepare:

    def test_arrays_and_metadata(self, repeated_measures):
        data = prepare(
            repeated_measures, 'y', ['arm', 'time'],
            groups=['subject'], block_keys='subject',
        )
        n = len(repeated_measures)
        assert data.n_observations == n
        assert data['X'].shape == (n, 3)
        np.testing.assert_allclose(data['y'], repeated_measures['y'])
        assert data.metadata['column_names'] == ('(Intercept)', 'arm[B]', 'time')
        assert data.metadata['n_subject'] == 6

    def test_group_codes_first_appearance(self, repeated_measures):
        data = prepare(repeated_measures, 'y', ['time'], groups=['subject'])
        codes = data['group_subject']
        assert codes.dtype == np.int64
        np.testing.assert_array_equal(codes, np.repeat(np.arange(6), 4))
        assert data.metadata['group_levels']['subject'] == tuple(f"s{i}" for i in range(6))

    def test_blocks(self, repeated_measures):
        data = prepare(repeated_measures, 'y', ['time'], block_keys='subject')
        np.testing.assert_array_equal(data['block_first'], np.arange(0, 24, 4))
        np.testing.assert_array_equal(data['block_length'], np.full(6, 4))

    def test_capabilities(self, repeated_measures):
        data = prepare(repeated_measures, 'y', ['time'], groups=['subject'], block_keys='subject')
        for cap in (CAPABILITY_DESIGN_MATRIX, CAPABILITY_GROUPED, CAPABILITY_BLOCKED, CAPABILITY_MATERIALIZED):
            assert data.supports(cap)
        assert not data.supports('streaming')

    def test_row_order_preserved(self, repeated_measures):
        shuffled = repeated_measures.sample(frac=1.0, random_state=3).reset_index(drop=True)
        data = prepare(shuffled, 'y', ['time'])
        np.testing.assert_allclose(data['y'], shuffled['y'])

    def test_extra_arrays(self, repeated_measures):
        data = prepare(repeated_measures, 'y', ['time'], extra={'time': repeated_measures['time']})
        np.testing.assert_allclose(data['time'], repeated_measures['time'])

    def test_missing_response(self, repeated_measures):
        with pytest.raises(MalformedInputError) as exc:
            prepare(repeated_measures, 'score', ['time'])
        assert exc.value.column == 'score'

    def test_response_with_nan(self, repeated_measures):
        repeated_measures.loc[3, 'y'] = np.nan
        with pytest.raises(MalformedInputError, match="1 missing"):
            prepare(repeated_measures, 'y', ['time'])

    def test_missing_group_column(self, repeated_measures):
        with pytest.raises(MalformedInputError):
            prepare(repeated_measures, 'y', ['time'], groups=['site'])


class TestDataPayload:

    def test_satisfies_protocol(self):
        assert isinstance(DataPayload.from_arrays(y=np.zeros(3)), DataSource)

    def test_arrays_are_read_only_copies(self):
        y = np.array([1.0, 2.0])
        data = DataPayload.from_arrays(y=y)
        y[0] = 99.0
        assert data['y'][0] == 1.0
        with pytest.raises(ValueError):
            data['y'][0] = 5.0

    def test_missing_key_lists_available(self):
        data = DataPayload.from_arrays(y=np.zeros(3))
        with pytest.raises(KeyError, match="y"):
            data['X']
        assert 'y' in data
        assert data.get('X') is None

    def test_with_arrays(self):
        data = DataPayload.from_arrays(y=np.zeros(3))
        more = data.with_arrays(w=np.ones(3))
        assert 'w' in more and 'w' not in data

    def test_from_dataframe(self):
        df = pd.DataFrame({'a': [1, 2], 'b': [0.5, 1.5]})
        data = DataPayload.from_dataframe(df)
        assert data.n_observations == 2
        assert data['a'].dtype == np.float64

    def test_from_dataframe_non_numeric(self):
        with pytest.raises(ValidationError, match="not numeric"):
            DataPayload.from_dataframe(pd.DataFrame({'a': ['x', 'y']}))

    def test_empty(self):
        with pytest.raises(ValidationError):
            DataPayload.from_arrays()

    def test_capabilities_follow_array_names(self):
        data = DataPayload.from_arrays(
            y=np.zeros(4), X=np.ones((4, 2)),
            group_site=np.array([0, 0, 1, 1]), block_first=np.array([0, 2]),
        )
        assert data.supports(CAPABILITY_DESIGN_MATRIX)
        assert data.supports(CAPABILITY_GROUPED)
        assert data.supports(CAPABILITY_BLOCKED)
        plain = DataPayload.from_arrays(y=np.zeros(4), group_site=np.zeros(4))
        # float codes are not group indices
        assert not plain.supports(CAPABILITY_GROUPED)
        assert plain.with_arrays(group_site=np.zeros(4, dtype=int)).supports(CAPABILITY_GROUPED)

    def test_unknown_capability(self):
        with pytest.raises(ValidationError, match="unknown capabilities"):
            DataPayload.from_arrays(capabilities=frozenset({'streaming'}), y=np.zeros(3))
