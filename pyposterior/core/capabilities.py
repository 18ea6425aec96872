"""
Capability string constants for PyPosterior.

This module is the SINGLE SOURCE OF TRUTH for capability strings.
Import from here, never use raw strings.

Usage:
    from pyposterior.core.capabilities import CAPABILITY_BLOCKED

    if payload.supports(CAPABILITY_BLOCKED):
        first, last = payload['block_first'], payload['block_last']
"""

# Data is held as full numpy arrays in memory
CAPABILITY_MATERIALIZED = 'materialized'

# Data can be read repeatedly (density re-evaluated after sampling)
CAPABILITY_REPEATABLE = 'repeatable'

# Payload carries a fixed-effects design matrix 'X' with column names
CAPABILITY_DESIGN_MATRIX = 'design_matrix'

# Payload carries integer group indices for random effects
CAPABILITY_GROUPED = 'grouped'

# Payload carries correlation block ranges 'block_first' / 'block_last'
CAPABILITY_BLOCKED = 'blocked'

# All capabilities as a frozenset for validation
ALL_CAPABILITIES = frozenset({
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
    CAPABILITY_BLOCKED,
})
