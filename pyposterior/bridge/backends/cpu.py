"""
CPU bridge sampling backend.

Warp-free bridge sampling with the optimal bridge function (Meng & Wong,
1996), following the bridgesampling R package (Gronau et al., 2017):

    1. Map draws to the unconstrained space. Within each chain, the first
       half fits the proposal, the second half is held out.
    2. Fit the proposal g: a moment-matched multivariate normal, or a
       Gaussian mixture (scikit-learn) with components chosen by BIC.
    3. Draw N2 = N1 proposal samples.
    4. Evaluate q11 = log p(held-out), q12 = log g(held-out),
       q21 = log p(proposal draws), q22 = log g(proposal draws), where p
       is the unnormalized posterior including the Jacobian.
    5. Iterate

           r <- mean_j[ e^{l2_j} / (s1 e^{l2_j} + s2 r) ]
                / mean_i[ 1 / (s1 e^{l1_i} + s2 r) ]

       with l1 = q11 - q12, l2 = q21 - q22 (both rescaled by the median
       of l1), s1 = N1_eff / (N1_eff + N2), s2 = N2 / (N1_eff + N2), until
       |r - r_old| / r < tol.
    6. logml = log r + median(l1).

The relative mean-squared error is the Fruehwirth-Schnatter (2004)
approximation, with the autocorrelation of the held-out draws entering
through their integrated autocorrelation time.

All sums run in log space (logsumexp); no density is exponentiated
directly.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from scipy import linalg as sp_linalg
from scipy.special import logsumexp
from sklearn.mixture import GaussianMixture

from pyposterior.core.compute.timing import Timer
from pyposterior.core.exceptions import BridgeNonConvergenceError, NotPositiveDefiniteError
from pyposterior.core.result import Result
from pyposterior.bridge._common import BridgeParams
from pyposterior.bridge.design import BridgeDesign
from pyposterior.sampling._diagnostics import ess, integrated_autocorr_time

logger = logging.getLogger(__name__)

_LOG_2PI = np.log(2.0 * np.pi)


class _NormalProposal:
    """Multivariate normal matched to the mean and covariance of the fit draws."""

    n_components = 1

    def __init__(self, x: NDArray):
        self.mean = x.mean(axis=0)
        cov = np.atleast_2d(np.cov(x, rowvar=False))
        try:
            self.chol = sp_linalg.cholesky(cov, lower=True)
        except sp_linalg.LinAlgError as e:
            raise NotPositiveDefiniteError(
                "bridge proposal covariance is not positive definite; "
                "posterior draws may be degenerate",
                matrix_name='proposal_covariance',
                min_eigenvalue=float(np.min(np.linalg.eigvalsh(cov))),
            ) from e
        self._log_det = 2.0 * float(np.sum(np.log(np.diag(self.chol))))

    def logpdf(self, x: NDArray) -> NDArray:
        z = sp_linalg.solve_triangular(self.chol, (x - self.mean).T, lower=True)
        dim = x.shape[1]
        return -0.5 * (dim * _LOG_2PI + self._log_det + np.sum(z * z, axis=0))

    def draw(self, n: int, rng: np.random.Generator) -> NDArray:
        z = rng.standard_normal((n, len(self.mean)))
        return self.mean + z @ self.chol.T


class _MixtureProposal:
    """Gaussian mixture fitted by EM; components chosen by BIC when not given."""

    def __init__(self, x: NDArray, n_components: int | None, max_components: int, seed: int):
        n, dim = x.shape
        if n_components is not None:
            candidates = [n_components]
        else:
            # each component needs enough draws for a full covariance
            upper = max(1, min(max_components, n // (dim + 1)))
            candidates = list(range(1, upper + 1))

        best, best_bic = None, np.inf
        for k in candidates:
            gmm = GaussianMixture(
                n_components=k,
                covariance_type='full',
                reg_covar=1e-6,
                n_init=1,
                random_state=seed,
            ).fit(x)
            bic = gmm.bic(x)
            logger.debug("mixture proposal: %d component(s), BIC %.3f", k, bic)
            if bic < best_bic:
                best, best_bic = gmm, bic
        self.gmm = best
        self.n_components = best.n_components
        self.chols = np.array([np.linalg.cholesky(c) for c in best.covariances_])

    def logpdf(self, x: NDArray) -> NDArray:
        return self.gmm.score_samples(x)

    def draw(self, n: int, rng: np.random.Generator) -> NDArray:
        comp = rng.choice(self.n_components, size=n, p=self.gmm.weights_)
        z = rng.standard_normal((n, self.gmm.means_.shape[1]))
        return self.gmm.means_[comp] + np.einsum('nij,nj->ni', self.chols[comp], z)


class CPUBridgeBackend:
    """CPU backend for bridge sampling."""

    def __init__(self, method: str = 'normal'):
        self._method = method

    @property
    def name(self) -> str:
        return f'cpu_bridge_{self._method}'

    def solve(self, design: BridgeDesign) -> Result[BridgeParams]:
        """
        Estimate the log marginal likelihood.

        Raises:
            BridgeNonConvergenceError: The recursion did not converge
                within design.max_iter iterations.
        """
        timer = Timer()
        timer.start()

        model, data, draws = design.model, design.data, design.draws
        rng = np.random.default_rng(design.seed)

        with timer.section('transform'):
            theta = draws.unconstrained(model)
            half = draws.n_draws // 2
            fit = theta[:, :half].reshape(-1, model.dim)
            held = theta[:, half:]
            held_flat = held.reshape(-1, model.dim)
            n1 = held_flat.shape[0]

        with timer.section('proposal'):
            if design.method == 'normal':
                proposal = _NormalProposal(fit)
            else:
                proposal = _MixtureProposal(
                    fit,
                    design.n_components,
                    design.settings.max_components,
                    seed=int(rng.integers(2**31 - 1)),
                )
            gen = proposal.draw(n1, rng)
            n2 = gen.shape[0]

        with timer.section('densities'):
            q11 = np.array([model.log_density_unconstrained(t, data) for t in held_flat])
            q12 = proposal.logpdf(held_flat)
            q21 = np.array([model.log_density_unconstrained(t, data) for t in gen])
            q22 = proposal.logpdf(gen)

        if design.use_neff:
            neff = float(np.median([ess(held[:, :, j]) for j in range(model.dim)]))
            neff = min(neff, float(n1)) if np.isfinite(neff) and neff > 0 else float(n1)
        else:
            neff = float(n1)

        with timer.section('iteration'):
            log_r, iterations, change, converged = _iterate(
                q11, q12, q21, q22, neff, design.tol, design.max_iter
            )
        lstar = float(np.median(q11 - q12))
        logml = log_r + lstar

        with timer.section('error'):
            re2 = _relative_mse(q11, q12, q21, q22, logml, held)
            error_percentage = 100.0 * float(np.sqrt(re2)) if np.isfinite(re2) else float('nan')

        if not converged:
            raise BridgeNonConvergenceError(
                f"bridge sampling for model {model.name!r} did not converge in "
                f"{iterations} iterations (relative change {change:.3g}, tol "
                f"{design.tol:g}); last estimate logml={logml:.6f}",
                iterations=iterations,
                logml=logml,
                error_percentage=error_percentage,
                final_change=change,
                threshold=design.tol,
            )

        logger.info(
            "bridge sampling %r: logml %.6f (%.3g%% error) after %d iterations",
            model.name, logml, error_percentage, iterations,
        )
        timer.stop()

        warnings_list: list[str] = []
        if not np.isfinite(error_percentage):
            warnings_list.append("error of the bridge estimate could not be computed")

        return Result(
            params=BridgeParams(
                logml=float(logml),
                re2=float(re2),
                error_percentage=error_percentage,
                iterations=iterations,
                method=design.method,
                n_components=proposal.n_components,
                neff=neff,
                q11=q11,
                q12=q12,
                q21=q21,
                q22=q22,
            ),
            info={
                'method': design.method,
                'seed': design.seed,
                'iterations': iterations,
                'final_change': change,
                'n_fit': fit.shape[0],
                'n_iter_draws': n1,
                'neff': neff,
                'use_neff': design.use_neff,
                'model_name': model.name,
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warnings_list),
        )


def _iterate(q11, q12, q21, q22, neff, tol, max_iter) -> tuple[float, int, float, bool]:
    """
    Fixed-point recursion for log r, rescaled by median(l1).

    Returns:
        (log_r, iterations, final relative change, converged)
    """
    l1 = q11 - q12
    l2 = q21 - q22
    lstar = np.median(l1)
    l1 = l1 - lstar
    l2 = l2 - lstar
    n2 = len(l2)

    log_s1 = np.log(neff / (neff + n2))
    log_s2 = np.log(n2 / (neff + n2))
    log_n1 = np.log(len(l1))
    log_n2 = np.log(n2)

    log_r = np.log(0.5)
    change = np.inf
    for i in range(1, max_iter + 1):
        log_r_old = log_r
        num = logsumexp(l2 - np.logaddexp(log_s1 + l2, log_s2 + log_r)) - log_n2
        den = logsumexp(-np.logaddexp(log_s1 + l1, log_s2 + log_r)) - log_n1
        log_r = float(num - den)
        if not np.isfinite(log_r):
            return log_r, i, float('nan'), False
        # |r - r_old| / r
        change = abs(float(np.expm1(log_r_old - log_r)))
        if change < tol:
            return log_r, i, change, True
    return log_r, max_iter, change, False


def _relative_mse(q11, q12, q21, q22, logml, held) -> float:
    """Approximate relative mean-squared error of exp(logml)."""
    n1, n2 = len(q11), len(q21)
    log_s1 = np.log(n1 / (n1 + n2))
    log_s2 = np.log(n2 / (n1 + n2))

    # f1 = p/(s1 p + s2 g) at proposal draws, f2 = g/(s1 p + s2 g) at posterior draws
    log_p_g = q21 - logml
    log_p_p = q11 - logml
    f1 = np.exp(log_p_g - np.logaddexp(log_s1 + log_p_g, log_s2 + q22))
    f2 = np.exp(q12 - np.logaddexp(log_s1 + log_p_p, log_s2 + q12))

    mean_f1, mean_f2 = np.mean(f1), np.mean(f2)
    if mean_f1 <= 0 or mean_f2 <= 0:
        return float('nan')

    # autocorrelation of f2 along each chain of held-out draws
    f2_chains = f2.reshape(held.shape[0], held.shape[1])
    tau = float(np.mean([integrated_autocorr_time(c) for c in f2_chains]))

    term1 = np.var(f1, ddof=1) / mean_f1**2 / n2
    term2 = tau * np.var(f2, ddof=1) / mean_f2**2 / n1
    return float(term1 + term2)
