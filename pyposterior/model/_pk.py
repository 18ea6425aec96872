"""
Hierarchical one-compartment pharmacokinetic model.

Oral dose D into a gut compartment, first-order absorption ka into a
central compartment of volume V, first-order elimination ke:

    dA_gut/dt = -ka A_gut
    dA_c/dt   =  ka A_gut - ke A_c
    C(t)      =  A_c(t) / V

Subject parameters are log-normal around population values:

    log(ka, ke, V)[j] = log_pop + omega * eta[j],   eta[j] ~ Normal(0, I)
    log y_ij ~ Normal(log C_j(t_ij), sigma)

solver='ode' integrates the system with scipy.integrate.solve_ivp;
solver='analytic' uses the closed-form Bateman function. Both give the
same curve up to integration tolerance.

Data keys: 'y' (> 0), 'time' (> 0), 'group_<group>', 'dose' (one entry
per subject).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats
from scipy.integrate import solve_ivp

from pyposterior.core.capabilities import CAPABILITY_GROUPED
from pyposterior.core.exceptions import NumericalError, ValidationError
from pyposterior.model._checks import require, require_codes
from pyposterior.model._priors import half_normal_lpdf, normal_lpdf
from pyposterior.model.spec import ModelSpec, Parameter

SOLVERS = ('ode', 'analytic')


def _rhs(t, state, ka, ke):
    gut, central = state
    return [-ka * gut, ka * gut - ke * central]


def concentration(
    times: NDArray,
    dose: float,
    ka: float,
    ke: float,
    volume: float,
    *,
    solver: str = 'ode',
    rtol: float = 1e-8,
    atol: float = 1e-10,
) -> NDArray:
    """
    Central-compartment concentration at the given times (t >= 0).

    Raises:
        NumericalError: If the ODE integration fails.
    """
    times = np.asarray(times, dtype=np.float64)
    if solver == 'analytic':
        if abs(ka - ke) < 1e-12:
            return dose / volume * ka * times * np.exp(-ke * times)
        return dose * ka / (volume * (ka - ke)) * (np.exp(-ke * times) - np.exp(-ka * times))

    if solver != 'ode':
        raise ValidationError(f"solver must be one of {SOLVERS}, got {solver!r}")

    order = np.argsort(times)
    t_sorted = times[order]
    sol = solve_ivp(
        _rhs,
        (0.0, float(t_sorted[-1])),
        [dose, 0.0],
        t_eval=t_sorted,
        args=(ka, ke),
        method='LSODA',
        rtol=rtol,
        atol=atol,
    )
    if not sol.success:
        raise NumericalError(f"PK ODE integration failed: {sol.message}")

    conc = np.empty_like(times)
    conc[order] = sol.y[1] / volume
    return conc


def _subject_parameters(params: dict) -> NDArray:
    """(n_subjects, 3) matrix of (ka, ke, V)."""
    log_pop = np.array([params['log_ka'], params['log_ke'], params['log_v']], dtype=np.float64)
    return np.exp(log_pop + params['eta'] * params['omega'])


@dataclass(frozen=True)
class _PKDataCheck:
    group: str
    n_subjects: int

    def __call__(self, data: Any) -> None:
        key = f'group_{self.group}'
        require(
            data, 'pk_one_compartment',
            capabilities=(CAPABILITY_GROUPED,),
            keys=('y', 'time', key, 'dose'),
        )
        require_codes(data[key], self.n_subjects, key, 'pk_one_compartment')
        if np.any(data['y'] <= 0) or np.any(data['time'] <= 0):
            raise ValidationError("PK model needs positive concentrations at positive times")
        if np.size(data['dose']) < self.n_subjects:
            raise ValidationError(
                f"PK model needs one dose per subject: {self.n_subjects} subjects, "
                f"{np.size(data['dose'])} doses"
            )


@dataclass(frozen=True)
class _PKDensity:
    group: str
    solver: str
    prior_log_ka: float
    prior_log_ke: float
    prior_log_v: float

    def __call__(self, params: dict, data: Any) -> float:
        lp = normal_lpdf(params['log_ka'], self.prior_log_ka, 1.0)
        lp += normal_lpdf(params['log_ke'], self.prior_log_ke, 1.0)
        lp += normal_lpdf(params['log_v'], self.prior_log_v, 1.0)
        lp += half_normal_lpdf(params['omega'], 0.5)
        lp += normal_lpdf(params['eta'], 0.0, 1.0)
        lp += half_normal_lpdf(params['sigma'], 0.5)

        y = data['y']
        t = data['time']
        g = data[f'group_{self.group}']
        dose = data['dose']

        subj = _subject_parameters(params)
        conc = np.empty_like(y)
        for j in range(subj.shape[0]):
            rows = g == j
            if not np.any(rows):
                continue
            ka, ke, v = subj[j]
            conc[rows] = concentration(t[rows], float(dose[j]), ka, ke, v, solver=self.solver)

        if np.any(conc <= 0):
            return -np.inf
        lp += float(np.sum(sp_stats.norm.logpdf(np.log(y), np.log(conc), params['sigma'])))
        return lp


@dataclass(frozen=True)
class _PKSimulate:
    solver: str

    def __call__(self, params: dict, data: Any, aux: dict, rng: np.random.Generator):
        if 'times' not in aux or 'dose' not in aux:
            raise ValidationError("PK simulation needs aux['times'] and aux['dose']")
        times = np.asarray(aux['times'], dtype=np.float64)
        log_pop = np.array([params['log_ka'], params['log_ke'], params['log_v']])
        eta_new = rng.standard_normal(3)
        ka, ke, v = np.exp(log_pop + eta_new * params['omega'])
        conc = concentration(times, float(aux['dose']), ka, ke, v, solver=self.solver)
        return conc * np.exp(rng.normal(0.0, float(params['sigma']), size=len(times)))


def one_compartment_pk_model(
    n_subjects: int,
    *,
    group: str = 'subject',
    solver: str = 'ode',
    prior_ka: float = 1.0,
    prior_ke: float = 0.1,
    prior_v: float = 10.0,
) -> ModelSpec:
    """
    Build the hierarchical one-compartment PK model.

    Args:
        n_subjects: Number of subjects.
        group: Grouping name; the density reads data['group_<group>'].
        solver: 'ode' (solve_ivp) or 'analytic' (Bateman function).
        prior_ka, prior_ke, prior_v: Prior medians of the population
            absorption rate, elimination rate and volume.
    """
    if solver not in SOLVERS:
        raise ValidationError(f"solver must be one of {SOLVERS}, got {solver!r}")
    return ModelSpec(
        name=f'pk_one_compartment_{solver}',
        parameters=(
            Parameter('log_ka'),
            Parameter('log_ke'),
            Parameter('log_v'),
            Parameter('omega', (3,), support='positive'),
            Parameter('eta', (n_subjects, 3)),
            Parameter('sigma', support='positive'),
        ),
        log_density_fn=_PKDensity(
            group=group,
            solver=solver,
            prior_log_ka=float(np.log(prior_ka)),
            prior_log_ke=float(np.log(prior_ke)),
            prior_log_v=float(np.log(prior_v)),
        ),
        simulate_fn=_PKSimulate(solver=solver),
        check_data_fn=_PKDataCheck(group=group, n_subjects=int(n_subjects)),
    )
