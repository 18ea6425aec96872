"""
Tests for the built-in models.
"""

import numpy as np
import pytest
from scipy import integrate
from scipy import stats as sp_stats

from pyposterior.core.exceptions import DimensionError, MalformedInputError, ValidationError
from pyposterior.data import DataPayload, prepare
from pyposterior.model import (
    ar1_covariance,
    ar1_mixed_model,
    concentration,
    normal_log_marginal,
    normal_model,
    one_compartment_pk_model,
    ou_student_t_model,
    poisson_goals_model,
)
from pyposterior.sampling import sample


class TestNormal:

    def test_log_marginal_matches_quadrature(self, normal_data):
        model = normal_model()
        shift = model.log_density({'mu': np.array(1.5)}, normal_data)

        def integrand(mu):
            return np.exp(model.log_density({'mu': np.array(mu)}, normal_data) - shift)

        value, _ = integrate.quad(integrand, -10.0, 10.0, points=[1.5])
        exact = normal_log_marginal(
            normal_data['y'], float(normal_data['sigma']),
            float(normal_data['prior_mean']), float(normal_data['prior_sd']),
        )
        assert np.log(value) + shift == pytest.approx(exact, abs=1e-6)

    def test_simulate(self, normal_data, rng):
        out = normal_model().simulate({'mu': np.array(0.0)}, normal_data, {'n': 3}, rng)
        assert out.shape == (3,)


class TestAR1:

    @pytest.fixture
    def data(self, repeated_measures):
        return prepare(
            repeated_measures, 'y', ['arm', 'time'],
            groups=['subject'], block_keys='subject',
        )

    def _params(self, rho):
        return {
            'beta': np.array([1.0, 0.8, 0.3]),
            'sigma': np.array(0.5),
            'sigma_u': np.array(0.4),
            'rho': np.array(rho),
            'z': np.zeros(6),
        }

    def test_covariance(self):
        cov = ar1_covariance(3, 0.5, 2.0)
        expected = 4.0 * np.array([[1.0, 0.5, 0.25], [0.5, 1.0, 0.5], [0.25, 0.5, 1.0]])
        np.testing.assert_allclose(cov, expected)

    def test_sequential_likelihood_equals_block_mvn(self, data):
        model = ar1_mixed_model(3, 6, group='subject')
        # rho has a flat prior, so density differences are likelihood differences
        diff = (model.log_density(self._params(0.6), data)
                - model.log_density(self._params(0.1), data))

        e = data['y'] - data['X'] @ self._params(0.0)['beta']
        expected = 0.0
        for first, length in zip(data['block_first'], data['block_length']):
            block = e[first:first + length]
            for rho, sign in ((0.6, 1.0), (0.1, -1.0)):
                cov = ar1_covariance(length, rho, 0.5)
                expected += sign * sp_stats.multivariate_normal.logpdf(block, np.zeros(length), cov)
        assert diff == pytest.approx(expected, abs=1e-8)

    def test_generated_emm(self, data):
        model = ar1_mixed_model(3, 6, group='subject')
        X_new = np.array([[1.0, 0.0, 0.0], [1.0, 1.0, 0.0]])
        gq = model.generated_quantities(self._params(0.3), data, {'X_new': X_new})
        np.testing.assert_allclose(gq['emm'], [1.0, 1.8])
        assert model.generated_quantities(self._params(0.3), data) == {}

    def test_simulate_matches_new_rows(self, data, rng):
        model = ar1_mixed_model(3, 6, group='subject')
        X_new = np.column_stack([np.ones(5), np.zeros(5), np.arange(5.0)])
        out = model.simulate(self._params(0.3), data, {'X_new': X_new}, rng)
        assert out.shape == (5,)

    def test_simulate_needs_rows(self, data, rng):
        with pytest.raises(ValidationError, match="X_new"):
            ar1_mixed_model(3, 6).simulate(self._params(0.3), data, {}, rng)

    def test_data_check_accepts_prepared(self, data):
        ar1_mixed_model(3, 6, group='subject').check_data(data)

    def test_needs_grouped_data(self, repeated_measures):
        ungrouped = prepare(repeated_measures, 'y', ['arm', 'time'])
        with pytest.raises(MalformedInputError, match="grouped"):
            ar1_mixed_model(3, 6, group='subject').check_data(ungrouped)

    def test_group_codes_within_levels(self, data):
        with pytest.raises(MalformedInputError, match="codes must lie") as exc:
            ar1_mixed_model(3, 4, group='subject').check_data(data)
        assert exc.value.column == 'group_subject'

    def test_design_width(self, data):
        with pytest.raises(DimensionError, match="X must have shape"):
            ar1_mixed_model(2, 6, group='subject').check_data(data)

    def test_sample_rejects_data_before_running(self, repeated_measures):
        ungrouped = prepare(repeated_measures, 'y', ['arm', 'time'])
        with pytest.raises(MalformedInputError):
            sample(ar1_mixed_model(3, 6, group='subject'), ungrouped, seed=1)


class TestOU:

    @pytest.fixture
    def data(self, rng):
        time = np.tile([0.0, 0.5, 1.5, 2.0, 4.0], 3)
        y = rng.normal(1.0, 0.5, size=15)
        return DataPayload.from_arrays(
            y=y, time=time,
            group_series=np.repeat(np.arange(3), 5),
            block_first=np.array([0, 5, 10]),
        )

    @pytest.fixture
    def params(self):
        return {
            'mu_pop': np.array(1.0),
            'tau_mu': np.array(0.5),
            'log_lambda_pop': np.array(0.0),
            'tau_lambda': np.array(0.5),
            'mu': np.array([0.8, 1.0, 1.2]),
            'lam': np.array([0.5, 1.0, 2.0]),
            'sigma': np.array(0.7),
            'nu': np.array(5.0),
        }

    def test_density_finite(self, data, params):
        assert np.isfinite(ou_student_t_model(3).log_density(params, data))

    def test_time_must_increase(self, data, params):
        time = np.array(data['time'])
        time[2] = time[1]
        bad = data.with_arrays(time=time)
        model = ou_student_t_model(3)
        with pytest.raises(ValidationError, match="strictly"):
            model.check_data(bad)
        model.check_data(data)

    def test_needs_blocks(self, data):
        unblocked = DataPayload.from_arrays(
            y=data['y'], time=data['time'], group_series=data['group_series'],
        )
        with pytest.raises(MalformedInputError, match="blocked"):
            ou_student_t_model(3).check_data(unblocked)

    def test_simulate(self, data, params, rng):
        out = ou_student_t_model(3).simulate(params, data, {'times': [0.0, 1.0, 3.0]}, rng)
        assert out.shape == (3,)
        assert np.all(np.isfinite(out))


class TestPK:

    TIMES = np.array([0.5, 1.0, 2.0, 4.0, 8.0, 12.0])

    def test_ode_matches_analytic(self):
        ode = concentration(self.TIMES, 100.0, 1.2, 0.15, 12.0, solver='ode')
        analytic = concentration(self.TIMES, 100.0, 1.2, 0.15, 12.0, solver='analytic')
        np.testing.assert_allclose(ode, analytic, rtol=1e-5)

    def test_unsorted_times(self):
        times = self.TIMES[::-1]
        np.testing.assert_allclose(
            concentration(times, 100.0, 1.2, 0.15, 12.0),
            concentration(self.TIMES, 100.0, 1.2, 0.15, 12.0)[::-1],
        )

    def test_unknown_solver(self):
        with pytest.raises(ValidationError):
            one_compartment_pk_model(2, solver='euler')

    def test_density_agrees_between_solvers(self, rng):
        n_sub = 2
        time = np.tile(self.TIMES, n_sub)
        conc = concentration(self.TIMES, 100.0, 1.0, 0.1, 10.0, solver='analytic')
        y = np.tile(conc, n_sub) * np.exp(rng.normal(0.0, 0.1, size=time.size))
        data = DataPayload.from_arrays(
            y=y, time=time,
            group_subject=np.repeat(np.arange(n_sub), len(self.TIMES)),
            dose=np.full(n_sub, 100.0),
        )
        params = {
            'log_ka': np.array(0.0),
            'log_ke': np.array(np.log(0.1)),
            'log_v': np.array(np.log(10.0)),
            'omega': np.full(3, 0.2),
            'eta': np.zeros((n_sub, 3)),
            'sigma': np.array(0.1),
        }
        lp_ode = one_compartment_pk_model(n_sub, solver='ode').log_density(params, data)
        lp_analytic = one_compartment_pk_model(n_sub, solver='analytic').log_density(params, data)
        assert lp_ode == pytest.approx(lp_analytic, abs=1e-4)

        out = one_compartment_pk_model(n_sub).simulate(
            params, data, {'times': self.TIMES, 'dose': 100.0}, rng,
        )
        assert out.shape == self.TIMES.shape
        assert np.all(out > 0)

    def _payload(self, y, dose):
        return DataPayload.from_arrays(
            y=y, time=np.tile(self.TIMES, 2),
            group_subject=np.repeat(np.arange(2), len(self.TIMES)),
            dose=dose,
        )

    def test_data_check(self):
        model = one_compartment_pk_model(2)
        y = np.ones(2 * len(self.TIMES))
        model.check_data(self._payload(y, np.full(2, 100.0)))

        y[3] = 0.0
        with pytest.raises(ValidationError, match="positive concentrations"):
            model.check_data(self._payload(y, np.full(2, 100.0)))
        with pytest.raises(ValidationError, match="one dose per subject"):
            model.check_data(self._payload(np.ones_like(y), np.array([100.0])))


class TestPoisson:

    @pytest.fixture
    def data(self):
        return DataPayload.from_arrays(
            home_team=np.array([0, 1, 2, 3]),
            away_team=np.array([1, 2, 3, 0]),
            home_goals=np.array([2, 0, 1, 3]),
            away_goals=np.array([1, 1, 1, 0]),
        )

    def _params(self, pooled):
        params = {
            'intercept': np.array(0.1),
            'home': np.array(0.2),
            'attack': np.array([0.1, -0.1, 0.0, 0.2]),
            'defence': np.array([0.0, 0.1, -0.2, 0.1]),
        }
        if pooled:
            params.update(sigma_att=np.array(0.5), sigma_def=np.array(0.5))
        return params

    def test_variants(self, data):
        pooled = poisson_goals_model(4)
        fixed = poisson_goals_model(4, pooled=False)
        assert pooled.dim == fixed.dim + 2
        assert pooled.name != fixed.name
        assert np.isfinite(pooled.log_density(self._params(True), data))
        assert np.isfinite(fixed.log_density(self._params(False), data))

    def test_generated_rates(self, data):
        gq = poisson_goals_model(4).generated_quantities(self._params(True), data)
        assert gq['rate_home'].shape == (4,)
        assert gq['rate_home'][0] == pytest.approx(np.exp(0.1 + 0.2 + 0.1 - 0.1))

    def test_simulate(self, data, rng):
        out = poisson_goals_model(4).simulate(
            self._params(True), data, {'home_team': [0, 2], 'away_team': [1, 3]}, rng,
        )
        assert out.shape == (4,)
        assert np.all(out >= 0)

    def test_simulate_needs_fixtures(self, data, rng):
        with pytest.raises(ValidationError, match="home_team"):
            poisson_goals_model(4).simulate(self._params(True), data, {'away_team': [1]}, rng)

    def test_data_check(self, data):
        poisson_goals_model(4).check_data(data)
        with pytest.raises(MalformedInputError, match="codes must lie") as exc:
            poisson_goals_model(3).check_data(data)
        assert exc.value.column == 'home_team'

        negative = data.with_arrays(away_goals=np.array([1, -1, 1, 0]))
        with pytest.raises(ValidationError, match="non-negative counts"):
            poisson_goals_model(4).check_data(negative)

        short = data.with_arrays(home_goals=np.array([2, 0, 1]))
        with pytest.raises(DimensionError):
            poisson_goals_model(4).check_data(short)
