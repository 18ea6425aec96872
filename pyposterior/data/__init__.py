"""
DataPreparer: tabular observations to model-ready numeric payloads.

Usage:
    from pyposterior.data import to_long, prepare

    long = to_long(wide, 'patient', ['week0', 'week1', 'week2'],
                   time_name='week', value_name='score')
    payload = prepare(long, 'score', ['drug', 'week', 'drug:week'],
                      groups=['patient'], block_keys='patient')
"""

from pyposterior.data.payload import DataPayload
from pyposterior.data._reshape import read_table, to_long, to_wide
from pyposterior.data._terms import DesignMatrix, design_matrix, parse_terms
from pyposterior.data._blocks import CorrelationBlock, correlation_blocks, block_bounds
from pyposterior.data.solvers import prepare

__all__ = [
    "DataPayload",
    "read_table",
    "to_long",
    "to_wide",
    "DesignMatrix",
    "design_matrix",
    "parse_terms",
    "CorrelationBlock",
    "correlation_blocks",
    "block_bounds",
    "prepare",
]
