"""
Shared compute utilities: section timing and numerical settings.
"""

from pyposterior.core.compute.timing import Timer
from pyposterior.core.compute.tolerances import (
    BridgeSettings,
    SamplerSettings,
    DiagnosticSettings,
    BRIDGE_DEFAULT,
    SAMPLER_DEFAULT,
    DIAGNOSTIC_DEFAULT,
)

__all__ = [
    "Timer",
    "BridgeSettings",
    "SamplerSettings",
    "DiagnosticSettings",
    "BRIDGE_DEFAULT",
    "SAMPLER_DEFAULT",
    "DIAGNOSTIC_DEFAULT",
]
