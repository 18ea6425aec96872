"""
Tests for bridge sampling and model comparison.
"""

import warnings

import numpy as np
import pytest

from pyposterior.bridge import (
    BridgeDesign,
    CPUBridgeBackend,
    bayes_factor,
    bridge_sampler,
    posterior_model_probs,
)
from pyposterior.core.exceptions import BridgeNonConvergenceError, ValidationError
from pyposterior.core.protocols import Backend
from pyposterior.data import DataPayload
from pyposterior.model import (
    ModelSpec,
    Parameter,
    normal_log_marginal,
    normal_model,
    poisson_goals_model,
)
from pyposterior.sampling import PosteriorDraws, sample


@pytest.fixture(scope="module")
def exact(normal_data):
    return normal_log_marginal(
        normal_data['y'], float(normal_data['sigma']),
        float(normal_data['prior_mean']), float(normal_data['prior_sd']),
    )


@pytest.fixture(scope="module")
def estimate(normal_fit, normal_data):
    return bridge_sampler(normal_fit.draws, normal_model(), normal_data, seed=1)


class TestNormalProposal:

    def test_matches_closed_form(self, estimate, exact):
        assert estimate.logml == pytest.approx(exact, abs=0.05)
        assert estimate.error_percentage < 5.0
        assert estimate.iterations >= 1
        assert estimate.method == 'normal'
        assert estimate.backend_name == 'cpu_bridge_normal'

    def test_backend_protocol(self):
        assert isinstance(CPUBridgeBackend(), Backend)
        assert CPUBridgeBackend(method="mixture").name == "cpu_bridge_mixture"

    def test_custom_backend(self, normal_fit, normal_data, estimate):
        class Counting:
            def __init__(self):
                self.calls = 0

            @property
            def name(self):
                return 'counting'

            def solve(self, design):
                self.calls += 1
                return CPUBridgeBackend(method=design.method).solve(design)

        backend = Counting()
        est = bridge_sampler(normal_fit.draws, normal_model(), normal_data,
                             backend=backend, seed=1)
        assert backend.calls == 1
        assert est.logml == estimate.logml

    def test_non_backend_rejected(self, normal_fit, normal_data):
        with pytest.raises(ValidationError, match="backend"):
            bridge_sampler(normal_fit.draws, normal_model(), normal_data, backend=object())

    def test_same_seed_reproducible(self, normal_fit, normal_data, estimate):
        again = bridge_sampler(normal_fit.draws, normal_model(), normal_data, seed=1)
        assert again.logml == estimate.logml

    def test_without_neff(self, normal_fit, normal_data, exact):
        est = bridge_sampler(normal_fit.draws, normal_model(), normal_data,
                             use_neff=False, seed=1)
        assert est.logml == pytest.approx(exact, abs=0.05)
        assert est.info['neff'] == est.info['n_iter_draws']

    def test_summary(self, estimate):
        text = estimate.summary()
        assert "log marginal likelihood" in text
        assert "normal_mean" in text


class TestShiftInvariance:

    @pytest.mark.parametrize("c", [-250.0, 3.0, 1000.0])
    def test_constant_shifts_logml(self, normal_fit, normal_data, estimate, c):
        shifted = bridge_sampler(normal_fit.draws, normal_model().shifted(c), normal_data, seed=1)
        assert shifted.logml == pytest.approx(estimate.logml + c, abs=1e-8)

    def test_bayes_factor_of_shift(self, normal_fit, normal_data, estimate):
        shifted = bridge_sampler(normal_fit.draws, normal_model().shifted(3.0), normal_data, seed=1)
        bf = bayes_factor(shifted, estimate)
        assert bf.log_bf == pytest.approx(3.0, abs=1e-8)
        assert bf.bf == pytest.approx(np.exp(3.0), rel=1e-7)
        assert bf.model_b == 'normal_mean'


class TestBayesFactorFromSeparateRuns:
    """Two models fit independently to the same data."""

    def test_recovers_known_offset(self, normal_data, estimate, exact):
        c = 3.0
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', RuntimeWarning)
            shifted_fit = sample(normal_model().shifted(c), normal_data,
                                 n_chains=4, n_warmup=500, n_iter=2500, seed=77)
        shifted = bridge_sampler(shifted_fit.draws, normal_model().shifted(c),
                                 normal_data, seed=8)

        assert shifted.logml == pytest.approx(exact + c, abs=0.05)

        bf = bayes_factor(shifted, estimate)
        combined = (shifted.error_percentage + estimate.error_percentage) / 100.0
        assert abs(bf.log_bf - c) < max(3.0 * combined, 0.05)
        # not the exact algebraic shift of a shared draw set
        assert bf.log_bf != c


def _season(gen, n_teams=4, rounds=2):
    attack = np.array([0.3, 0.1, -0.1, -0.3])[:n_teams]
    defence = np.array([0.2, 0.0, 0.0, -0.2])[:n_teams]
    home, away = [], []
    for _ in range(rounds):
        for h in range(n_teams):
            for a in range(n_teams):
                if h != a:
                    home.append(h)
                    away.append(a)
    home = np.array(home)
    away = np.array(away)
    home_goals = gen.poisson(np.exp(0.2 + 0.25 + attack[home] - defence[away]))
    away_goals = gen.poisson(np.exp(0.2 + attack[away] - defence[home]))
    return DataPayload.from_arrays(
        home_team=home, away_team=away, home_goals=home_goals, away_goals=away_goals,
    )


@pytest.fixture(scope="module")
def goals_comparison():
    data = _season(np.random.default_rng(19))
    estimates = []
    for pooled, seed in ((True, 31), (False, 32)):
        model = poisson_goals_model(4, pooled=pooled)
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', RuntimeWarning)
            fit = sample(model, data, n_chains=4, n_warmup=1000, n_iter=3000, seed=seed)
        estimates.append(bridge_sampler(fit.draws, model, data, seed=seed))
    return tuple(estimates)


class TestGoalsModelComparison:

    def test_estimates(self, goals_comparison):
        for est in goals_comparison:
            assert np.isfinite(est.logml)
            assert np.isfinite(est.error_percentage)

    def test_bayes_factor_and_probabilities(self, goals_comparison):
        pooled, fixed = goals_comparison
        bf = bayes_factor(pooled, fixed)
        assert bf.model_a == 'poisson_goals_pooled'
        assert bf.model_b == 'poisson_goals_fixed'
        assert bf.log_bf == pytest.approx(pooled.logml - fixed.logml)
        # both variants describe the season reasonably
        assert abs(bf.log_bf) < 10.0

        probs = posterior_model_probs(pooled, fixed)
        assert probs.sum() == pytest.approx(1.0)
        assert probs[0] == pytest.approx(1.0 / (1.0 + np.exp(-bf.log_bf)))


class TestMixtureProposal:

    def test_agrees_with_normal(self, normal_fit, normal_data, exact):
        est = bridge_sampler(normal_fit.draws, normal_model(), normal_data,
                             method='mixture', seed=1)
        assert est.logml == pytest.approx(exact, abs=0.1)
        assert est.n_components >= 1
        assert "Proposal components" in est.summary()

    def test_fixed_components(self, normal_fit, normal_data):
        est = bridge_sampler(normal_fit.draws, normal_model(), normal_data,
                             method='mixture', n_components=2, seed=1)
        assert est.n_components == 2
        assert np.isfinite(est.logml)


class TestFailures:

    def test_non_convergence_carries_estimate(self, normal_fit, normal_data):
        with pytest.raises(BridgeNonConvergenceError) as exc:
            bridge_sampler(normal_fit.draws, normal_model(), normal_data, max_iter=1, seed=1)
        assert np.isfinite(exc.value.logml)
        assert exc.value.iterations == 1
        assert exc.value.threshold == pytest.approx(1e-10)

    def test_schema_mismatch(self, normal_fit, normal_data):
        other = ModelSpec('two', (Parameter('mu'), Parameter('tau')), lambda p, d: 0.0)
        with pytest.raises(ValidationError, match="schema"):
            bridge_sampler(normal_fit.draws, other, normal_data)

    @pytest.mark.parametrize("kwargs,match", [
        ({'method': 'warp3'}, "method"),
        ({'n_components': 2}, "mixture"),
        ({'max_iter': 0}, "max_iter"),
        ({'tol': -1.0}, "tol"),
    ])
    def test_invalid_design(self, normal_fit, normal_data, kwargs, match):
        with pytest.raises(ValidationError, match=match):
            BridgeDesign.for_bridge(normal_fit.draws, normal_model(), normal_data, **kwargs)

    def test_too_few_draws(self, normal_fit, normal_data):
        draws = normal_fit.draws
        short = PosteriorDraws(draws.model_name, draws.schema, draws.values[:, :3])
        with pytest.raises(ValidationError, match="at least 4"):
            bridge_sampler(short, normal_model(), normal_data)


class TestModelProbabilities:

    def test_equal_priors(self):
        probs = posterior_model_probs(-10.0, -11.0)
        assert probs.sum() == pytest.approx(1.0)
        assert probs[0] == pytest.approx(1.0 / (1.0 + np.exp(-1.0)))

    def test_prior_weights(self):
        probs = posterior_model_probs(-10.0, -10.0, -10.0, prior_probs=[0.5, 0.25, 0.25])
        np.testing.assert_allclose(probs, [0.5, 0.25, 0.25])

    def test_large_differences_stable(self):
        probs = posterior_model_probs(-1e5, -1e5 - 800.0)
        assert np.all(np.isfinite(probs))
        assert probs[0] == pytest.approx(1.0)

    def test_accepts_solutions(self, estimate):
        probs = posterior_model_probs(estimate, estimate.logml - np.log(3.0))
        np.testing.assert_allclose(probs, [0.75, 0.25])

    @pytest.mark.parametrize("prior", [[0.7, 0.7], [1.0], [-0.5, 1.5]])
    def test_bad_priors(self, prior):
        with pytest.raises(ValidationError):
            posterior_model_probs(-1.0, -2.0, prior_probs=prior)

    def test_needs_two(self):
        with pytest.raises(ValidationError):
            posterior_model_probs(-1.0)

    def test_bayes_factor_from_floats(self):
        bf = bayes_factor(-5.0, -7.0)
        assert bf.log_bf == pytest.approx(2.0)
        assert bf.model_a is None
        with pytest.raises(ValidationError):
            bayes_factor('model', -1.0)
