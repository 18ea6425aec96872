"""
Tests for posterior summaries and paired-draw comparisons.
"""

import numpy as np
import pytest

from pyposterior.core.exceptions import DimensionError, ValidationError
from pyposterior.sampling import PosteriorDraws
from pyposterior.summary import (
    compare,
    credible_interval,
    marginal_means,
    pairwise_probabilities,
    posterior_mode,
    prob_greater,
    summarize,
)


@pytest.fixture
def draws(rng):
    values = np.empty((4, 500, 3))
    values[..., 0] = rng.normal(1.0, 0.5, size=(4, 500))
    values[..., 1] = rng.normal(2.0, 0.5, size=(4, 500))
    values[..., 2] = rng.gamma(2.0, 1.0, size=(4, 500))
    return PosteriorDraws(
        model_name='emm_demo',
        schema={'beta': (2,), 'sigma': ()},
        values=values,
        generated={'ratio': values[..., 1] / values[..., 2]},
    )


class TestProbGreater:

    def test_exact_count(self):
        a = np.array([1.0, 2.0, 3.0, 4.0])
        b = np.array([0.0, 3.0, 2.0, 5.0])
        assert prob_greater(a, b) == 0.5

    def test_ties_do_not_count(self):
        assert prob_greater(np.ones(4), np.ones(4)) == 0.0

    def test_scalar_threshold(self):
        assert prob_greater(np.arange(10.0), 6.5) == 0.3

    def test_length_mismatch(self):
        with pytest.raises(DimensionError):
            prob_greater(np.zeros(3), np.zeros(4))

    def test_compare_uses_pairing(self, draws):
        p = compare(draws, 'beta[1]', 'beta[0]')
        expected = np.mean(draws.column('beta[1]') > draws.column('beta[0]'))
        assert p == pytest.approx(expected)
        assert p > 0.85


class TestPointAndInterval:

    def test_credible_interval(self, rng):
        x = rng.normal(size=20000)
        lo, hi = credible_interval(x)
        assert lo == pytest.approx(-1.96, abs=0.06)
        assert hi == pytest.approx(1.96, abs=0.06)

    def test_interval_per_column(self, rng):
        out = credible_interval(rng.normal(size=(1000, 3)), (0.1, 0.5, 0.9))
        assert out.shape == (3, 3)

    def test_interval_bad_probs(self):
        with pytest.raises(ValidationError):
            credible_interval(np.arange(5.0), (0.1, 1.2))

    def test_mode_of_normal(self, rng):
        assert posterior_mode(rng.normal(3.0, 1.0, size=5000)) == pytest.approx(3.0, abs=0.15)

    def test_mode_of_skewed(self, rng):
        x = rng.gamma(2.0, 1.0, size=20000)
        assert posterior_mode(x) == pytest.approx(1.0, abs=0.2)
        assert posterior_mode(x) < np.mean(x)

    def test_mode_of_constant(self):
        assert posterior_mode(np.full(10, 2.5)) == 2.5


class TestSummarize:

    def test_all_parameters(self, draws):
        s = summarize(draws)
        assert s.names == ('beta[0]', 'beta[1]', 'sigma')
        assert len(s) == 3
        assert s['beta[0]']['mean'] == pytest.approx(1.0, abs=0.05)
        assert s['beta[1]']['sd'] == pytest.approx(0.5, abs=0.05)
        assert np.all(s.rhat < 1.02)
        assert s.backend_name == 'cpu_summary'

    def test_selection_by_name(self, draws):
        assert summarize(draws, ['sigma']).names == ('sigma',)
        assert summarize(draws, 'beta[1]').names == ('beta[1]',)
        assert summarize(draws, ['ratio']).names == ('ratio',)

    def test_unknown_name(self, draws):
        with pytest.raises(KeyError, match="gamma"):
            summarize(draws, ['gamma'])

    def test_point_choices(self, draws):
        median = summarize(draws, ['sigma'], point='median')
        mode = summarize(draws, ['sigma'], point='mode')
        mean = summarize(draws, ['sigma'])
        assert mode.estimate[0] < median.estimate[0] < mean.estimate[0]
        with pytest.raises(ValidationError):
            summarize(draws, point='max')

    def test_interval_bounds(self, draws):
        s = summarize(draws, ['beta'], probs=(0.05, 0.95))
        np.testing.assert_allclose(
            s.lower, np.quantile(draws.get('beta'), 0.05, axis=0)
        )
        assert np.all(s.lower < s.estimate) and np.all(s.estimate < s.upper)

    def test_bad_probs(self, draws):
        with pytest.raises(ValidationError):
            summarize(draws, probs=(0.9, 0.1))

    def test_to_dataframe(self, draws):
        df = summarize(draws, point='median').to_dataframe()
        assert df.index.name == 'parameter'
        assert list(df.columns) == ['median', 'mean', 'sd', '2.5%', '97.5%', 'ess_bulk', 'rhat']
        assert df.loc['sigma', 'median'] == pytest.approx(np.median(draws.get('sigma')))

    def test_samples(self, draws):
        s = summarize(draws, ['beta'])
        np.testing.assert_array_equal(s.samples('beta[1]'), draws.column('beta[1]'))
        with pytest.raises(KeyError):
            s.samples('sigma')

    def test_summary_text(self, draws):
        text = summarize(draws).summary()
        assert 'beta[0]' in text
        assert '97.5%' in text


class TestMarginalMeans:

    def test_linear_combination(self, draws):
        X_new = np.array([[1.0, 0.0], [1.0, 1.0]])
        emm = marginal_means(draws, 'beta', X_new, names=['A', 'A+B'])
        assert emm.names == ('A', 'A+B')
        beta = draws.get('beta')
        np.testing.assert_allclose(emm.samples('A+B'), beta[:, 0] + beta[:, 1])
        assert emm['A']['mean'] == pytest.approx(beta[:, 0].mean())

    def test_default_names(self, draws):
        emm = marginal_means(draws, 'beta', [0.5, 0.5])
        assert emm.names == ('emm[0]',)

    def test_column_mismatch(self, draws):
        with pytest.raises(DimensionError):
            marginal_means(draws, 'beta', np.ones((2, 3)))

    def test_scalar_coefficient(self, draws):
        with pytest.raises(DimensionError):
            marginal_means(draws, 'sigma', np.ones((1, 1)))


class TestPairwise:

    def test_matrix(self, draws):
        m = pairwise_probabilities(draws.get('beta'), ['b0', 'b1'])
        assert list(m.index) == ['b0', 'b1']
        assert np.isnan(m.loc['b0', 'b0'])
        assert m.loc['b0', 'b1'] + m.loc['b1', 'b0'] == pytest.approx(1.0)
        assert m.loc['b1', 'b0'] == pytest.approx(compare(draws, 'beta[1]', 'beta[0]'))

    def test_label_count(self, draws):
        with pytest.raises(DimensionError):
            pairwise_probabilities(draws.get('beta'), ['only'])
