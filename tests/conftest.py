"""
pytest configuration and shared fixtures.
"""

import numpy as np
import pandas as pd
import pytest

from pyposterior.data import DataPayload
from pyposterior.model import normal_model
from pyposterior.sampling import sample


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(scope="session")
def normal_data():
    """Data for the conjugate normal-mean model (known sigma)."""
    gen = np.random.default_rng(7)
    y = gen.normal(1.5, 2.0, size=20)
    return DataPayload.from_arrays(y=y, sigma=2.0, prior_mean=0.0, prior_sd=3.0)


@pytest.fixture(scope="session")
def normal_fit(normal_data):
    """Sampling run of the normal-mean model, shared across test modules."""
    return sample(
        normal_model(), normal_data,
        n_chains=4, n_warmup=500, n_iter=2500, seed=2024,
    )


@pytest.fixture
def repeated_measures():
    """Long-format repeated measures: 6 subjects x 4 visits, two arms."""
    gen = np.random.default_rng(11)
    subjects = [f"s{i}" for i in range(6)]
    rows = []
    for j, s in enumerate(subjects):
        arm = 'A' if j < 3 else 'B'
        u = gen.normal(0.0, 0.5)
        for t in range(4):
            y = 1.0 + (0.8 if arm == 'B' else 0.0) + 0.3 * t + u + gen.normal(0.0, 0.4)
            rows.append({'subject': s, 'arm': arm, 'time': float(t), 'y': y})
    return pd.DataFrame(rows)
