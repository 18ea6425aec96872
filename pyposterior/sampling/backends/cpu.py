"""
CPU reference sampler: adaptive random-walk Metropolis.

Works on the unconstrained parameter space of a ModelSpec. During warmup
the proposal covariance is re-estimated from the chain's own history
every adapt_window iterations and a global step scale is adapted toward
design.target_accept by Robbins-Monro updates. Adaptation stops at the
end of warmup, so post-warmup draws come from a fixed Markov kernel.

Chains are seeded from SeedSequence(seed).spawn(n_chains) and share no
state, so running them one at a time here or in separate processes
gives identical draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.compute.timing import Timer
from pyposterior.core.compute.tolerances import DIAGNOSTIC_DEFAULT, DiagnosticSettings
from pyposterior.core.exceptions import SamplerInitializationError, ValidationError
from pyposterior.core.result import Result
from pyposterior.model.spec import ModelSpec
from pyposterior.sampling._common import DrawsParams
from pyposterior.sampling._diagnostics import diagnose
from pyposterior.sampling.design import SamplerDesign
from pyposterior.sampling.draws import PosteriorDraws

logger = logging.getLogger(__name__)

# Arithmetic failures inside a density evaluation mark the proposal divergent.
_ARITHMETIC_ERRORS = (FloatingPointError, OverflowError, ZeroDivisionError, np.linalg.LinAlgError)


@dataclass
class _ChainOutput:
    values: NDArray           # (n_draws, n_flat)
    log_density: NDArray      # (n_draws,)
    accepted: NDArray         # (n_draws,) bool
    divergent: NDArray        # (n_draws,) bool
    n_divergent: int          # all post-warmup iterations, thinned or not
    acceptance_rate: float
    step_scale: float
    init_attempts: int


class CPUMetropolisBackend:
    """
    Adaptive random-walk Metropolis sampler.

    Satisfies the Sampler protocol; any other object with the same
    name/sample signature can be used in its place.
    """

    def __init__(self, diagnostics: DiagnosticSettings = DIAGNOSTIC_DEFAULT):
        self._diagnostics = diagnostics

    @property
    def name(self) -> str:
        return 'cpu_metropolis'

    def sample(self, model: ModelSpec, data: Any, design: SamplerDesign) -> Result[DrawsParams]:
        """
        Run all chains and return Result[DrawsParams].

        Raises:
            SamplerInitializationError: A chain found no finite starting point.
            InvalidDensityError: The density returned NaN or +inf.
        """
        timer = Timer()
        timer.start()

        seeds = np.random.SeedSequence(design.seed).spawn(design.n_chains)
        chains: list[_ChainOutput] = []

        with timer.section('sampling'):
            for c, seed_seq in enumerate(seeds):
                logger.debug("chain %d: %d iterations (%d warmup)", c, design.n_iter, design.n_warmup)
                out = self._run_chain(model, data, design, c, seed_seq)
                logger.info(
                    "chain %d finished: acceptance %.3f, step scale %.4g, %d divergent",
                    c, out.acceptance_rate, out.step_scale, out.n_divergent,
                )
                chains.append(out)

        draws = PosteriorDraws(
            model_name=model.name,
            schema=model.schema,
            values=np.stack([ch.values for ch in chains]),
            sample_stats={
                'log_density': np.stack([ch.log_density for ch in chains]),
                'accepted': np.stack([ch.accepted for ch in chains]),
                'divergent': np.stack([ch.divergent for ch in chains]),
            },
        )

        with timer.section('diagnostics'):
            rhat, ess_bulk = diagnose(draws.values)

        n_divergent = sum(ch.n_divergent for ch in chains)
        warnings_list = self._check(draws, rhat, ess_bulk, n_divergent)

        timer.stop()

        params = DrawsParams(
            draws=draws,
            rhat=rhat,
            ess_bulk=ess_bulk,
            n_divergent=n_divergent,
            acceptance_rate=np.array([ch.acceptance_rate for ch in chains]),
            step_scale=np.array([ch.step_scale for ch in chains]),
        )

        return Result(
            params=params,
            info={
                'method': 'adaptive_metropolis',
                'seed': design.seed,
                'n_chains': design.n_chains,
                'n_warmup': design.n_warmup,
                'n_iter': design.n_iter,
                'thin': design.thin,
                'target_accept': design.target_accept,
                'max_depth': design.max_depth,
                'init_attempts': [ch.init_attempts for ch in chains],
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warnings_list),
        )

    def _run_chain(
        self,
        model: ModelSpec,
        data: Any,
        design: SamplerDesign,
        chain: int,
        seed_seq: np.random.SeedSequence,
    ) -> _ChainOutput:
        rng = np.random.default_rng(seed_seq)
        settings = design.settings
        dim = model.dim

        theta, lp, attempts = self._initialize(model, data, design, chain, rng)
        params, _ = model.unpack(theta)
        current_flat = model.flatten(params)

        log_scale = np.log(2.38 / np.sqrt(dim))
        chol = np.eye(dim)
        history = np.empty((design.n_warmup, dim), dtype=np.float64)

        n_draws = design.n_draws
        values = np.empty((n_draws, model.flat_size), dtype=np.float64)
        log_density = np.empty(n_draws, dtype=np.float64)
        accepted = np.zeros(n_draws, dtype=bool)
        divergent = np.zeros(n_draws, dtype=bool)
        n_accept_post = 0
        n_divergent = 0
        pending_divergent = False
        kept = 0

        for it in range(design.n_iter):
            warmup = it < design.n_warmup
            proposal = theta + np.exp(log_scale) * (chol @ rng.standard_normal(dim))
            lp_prop, failed = self._evaluate(model, data, proposal)

            is_divergent = failed or not np.isfinite(lp_prop) or (
                lp - lp_prop > settings.divergence_threshold
            )
            if is_divergent:
                accept_prob = 0.0
                accept = False
            else:
                log_ratio = lp_prop - lp
                accept_prob = 1.0 if log_ratio >= 0 else float(np.exp(log_ratio))
                accept = bool(np.log(rng.uniform()) < log_ratio)

            if accept:
                theta = proposal
                lp = lp_prop
                current_flat = None

            if warmup:
                history[it] = theta
                gain = (it + 1) ** -0.6
                log_scale += gain * (accept_prob - design.target_accept)
                log_scale = max(log_scale, np.log(settings.min_scale))
                if (it + 1) % settings.adapt_window == 0 and it + 1 >= 2 * settings.adapt_window:
                    chol = self._adapt_covariance(history[(it + 1) // 2:it + 1], chol)
                continue

            n_accept_post += accept
            n_divergent += is_divergent
            # a thinned-away divergence is reported on the next kept draw
            pending_divergent = pending_divergent or is_divergent
            if (it - design.n_warmup) % design.thin != 0 or kept >= n_draws:
                continue
            if current_flat is None:
                current_flat = model.flatten(model.unpack(theta)[0])
            values[kept] = current_flat
            log_density[kept] = lp
            accepted[kept] = accept
            divergent[kept] = pending_divergent
            pending_divergent = False
            kept += 1

        n_post = design.n_iter - design.n_warmup
        return _ChainOutput(
            values=values,
            log_density=log_density,
            accepted=accepted,
            divergent=divergent,
            n_divergent=int(n_divergent),
            acceptance_rate=n_accept_post / n_post,
            step_scale=float(np.exp(log_scale)),
            init_attempts=attempts,
        )

    def _initialize(self, model, data, design, chain, rng) -> tuple[NDArray, float, int]:
        """Find a starting point with finite log density."""
        if design.init is not None:
            try:
                theta = model.pack(design.init)
            except ValidationError as e:
                raise SamplerInitializationError(
                    f"chain {chain}: user init is invalid: {e}", chain=chain, attempts=1
                ) from e
            lp, failed = self._evaluate(model, data, theta)
            if failed or not np.isfinite(lp):
                raise SamplerInitializationError(
                    f"chain {chain}: log density at user init is {lp}",
                    chain=chain,
                    attempts=1,
                )
            return theta, lp, 1

        radius = design.init_radius
        max_attempts = design.settings.max_init_attempts
        for attempt in range(1, max_attempts + 1):
            theta = rng.uniform(-radius, radius, size=model.dim)
            lp, failed = self._evaluate(model, data, theta)
            if not failed and np.isfinite(lp):
                if attempt > 1:
                    logger.info("chain %d: initialized after %d attempts", chain, attempt)
                return theta, lp, attempt

        raise SamplerInitializationError(
            f"chain {chain}: no finite log density in {max_attempts} random "
            f"initializations within [-{radius}, {radius}]",
            chain=chain,
            attempts=max_attempts,
        )

    @staticmethod
    def _evaluate(model: ModelSpec, data: Any, theta: NDArray) -> tuple[float, bool]:
        """
        Log density at theta; (value, True) if the evaluation overflowed.

        Invalid operations are left to produce NaN, which the model's
        density check turns into InvalidDensityError.
        """
        try:
            with np.errstate(over='raise', invalid='ignore'):
                return model.log_density_unconstrained(theta, data), False
        except _ARITHMETIC_ERRORS:
            return -np.inf, True

    @staticmethod
    def _adapt_covariance(window: NDArray, chol: NDArray) -> NDArray:
        """Regularized sample covariance of the window, as a Cholesky factor."""
        n, dim = window.shape
        if dim == 1:
            cov = np.atleast_2d(np.var(window[:, 0], ddof=1))
        else:
            cov = np.cov(window, rowvar=False)
        cov = (n / (n + 5.0)) * cov + 1e-3 * (5.0 / (n + 5.0)) * np.eye(dim)
        try:
            return np.linalg.cholesky(cov)
        except np.linalg.LinAlgError:
            return chol

    def _check(self, draws: PosteriorDraws, rhat, ess_bulk, n_divergent) -> list[str]:
        out: list[str] = []
        names = draws.param_names
        threshold = self._diagnostics.rhat_threshold
        bad = [names[j] for j in range(len(names)) if np.isfinite(rhat[j]) and rhat[j] > threshold]
        if bad:
            out.append(
                f"R-hat above {threshold} for {len(bad)} parameter(s): "
                f"{', '.join(bad[:5])}{'...' if len(bad) > 5 else ''}; "
                f"chains have not mixed"
            )
        min_ess = self._diagnostics.min_ess_per_chain * draws.n_chains
        low = [names[j] for j in range(len(names)) if np.isfinite(ess_bulk[j]) and ess_bulk[j] < min_ess]
        if low and draws.n_chains > 1:
            out.append(
                f"bulk ESS below {min_ess:g} for {len(low)} parameter(s): "
                f"{', '.join(low[:5])}{'...' if len(low) > 5 else ''}"
            )
        if n_divergent:
            out.append(f"{n_divergent} divergent iteration(s) after warmup")
        return out
