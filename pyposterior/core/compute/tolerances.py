"""
Numerical settings for iterative and diagnostic computations.

Each group of constants is a frozen dataclass so callers can pass a
modified copy (dataclasses.replace) instead of patching globals.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class BridgeSettings:
    """Fixed-point iteration settings for bridge sampling."""
    tol: float
    max_iter: int
    max_components: int
    name: str


@dataclass(frozen=True)
class SamplerSettings:
    """Numerical settings for the reference Metropolis sampler."""
    divergence_threshold: float
    max_init_attempts: int
    init_radius: float
    adapt_window: int
    min_scale: float
    name: str


@dataclass(frozen=True)
class DiagnosticSettings:
    """Thresholds for convergence diagnostics."""
    rhat_threshold: float
    min_ess_per_chain: float
    name: str


# Relative change in the bridge constant r, as in the bridgesampling
# R package (criterion "r", tol1 = 1e-10).
BRIDGE_DEFAULT = BridgeSettings(
    tol=1e-10,
    max_iter=1000,
    max_components=5,
    name='bridge_default',
)

# A drop in log density larger than this marks a proposal as divergent,
# mirroring Stan's max energy error of 1000.
SAMPLER_DEFAULT = SamplerSettings(
    divergence_threshold=1000.0,
    max_init_attempts=100,
    init_radius=2.0,
    adapt_window=50,
    min_scale=1e-8,
    name='sampler_default',
)

# Vehtari et al. (2021): R-hat < 1.01 and bulk ESS > 100 per chain.
DIAGNOSTIC_DEFAULT = DiagnosticSettings(
    rhat_threshold=1.01,
    min_ess_per_chain=100.0,
    name='diagnostic_default',
)
