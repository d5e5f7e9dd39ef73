"""
Pytest configuration and shared fixtures for bayespool tests.
"""

import pytest
import numpy as np
import pandas as pd

from bayespool import (
    AlgorithmInfo,
    SampledPosteriorFit,
    SimulationComparison,
    UnsamplableModelError,
)


@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(rng_seed):
    return np.random.default_rng(rng_seed)


@pytest.fixture
def make_fit():
    """
    Factory for sampled fits with 2 chains x (1000 - 500) = 1000 draws.

    Each column holds distinct values so resampled rows can be traced back.

    Usage:
        fit = make_fit("m1", ["alpha", "beta"])
    """
    def _make(name, columns, chains=2, iterations=1000, warmup=500, n_draws=None, log_ml=None):
        n = chains * (iterations - warmup) if n_draws is None else n_draws
        draws = pd.DataFrame({
            col: np.arange(n, dtype=float) + 10_000 * (i + 1)
            for i, col in enumerate(columns)
        })
        return SampledPosteriorFit(
            name=name,
            draws=draws,
            algorithm=AlgorithmInfo(chains=chains, iterations=iterations, warmup=warmup),
            log_marginal_likelihood=log_ml,
        )
    return _make


def _simulated_draws(index, iterations):
    base = np.arange(iterations, dtype=float)
    if index == 0:
        return pd.DataFrame({"mu": base})
    if index == 1:
        return pd.DataFrame({"mu": base, "beta_group": base + 0.5})
    return pd.DataFrame({"mu": base, "beta_group": base + 0.5, "sig2_ID": base + 0.25})


@pytest.fixture
def samplable_comparison():
    """Three simulated models; the denominator can be sampled."""
    return SimulationComparison(
        denominator="Intercept only",
        numerators=["group", "group + ID"],
        bayes_factors=[3.0, 6.0],
        simulator=_simulated_draws,
    )


@pytest.fixture
def intercept_only_comparison():
    """Three simulated models; the intercept-only denominator cannot be sampled."""
    def simulator(index, iterations):
        if index == 0:
            raise UnsamplableModelError(model_name="Intercept only")
        return _simulated_draws(index, iterations)

    return SimulationComparison(
        denominator="Intercept only",
        numerators=["group", "group + ID"],
        bayes_factors=[3.0, 6.0],
        simulator=simulator,
    )
