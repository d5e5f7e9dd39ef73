"""
bayespool Quick Start Example

Pools posterior draws of two regression models fitted to the same data,
then repeats the exercise for a simulation-based comparison whose
intercept-only model cannot be sampled.
"""

import numpy as np
import pandas as pd
from bayespool import (
    # Fitted-model containers
    AlgorithmInfo,
    SampledPosteriorFit,
    SimulationComparison,
    UnsamplableModelError,

    # Pooling
    WeightedPosteriorConfig,
    WeightedPosteriorEngine,
    PooledPosteriorValidator,
)


def example_1_sampled_models():
    """Example 1: Two MCMC fits, Bayes factors from marginal likelihoods"""

    print("=" * 80)
    print("EXAMPLE 1: Pooling MCMC Draws")
    print("=" * 80)

    rng = np.random.default_rng(2024)
    algo = AlgorithmInfo(chains=4, iterations=2000, warmup=1000)

    m0 = SampledPosteriorFit(
        name="extra ~ 1",
        draws=pd.DataFrame({
            "b_Intercept": rng.normal(1.5, 0.4, size=4000),
            "sigma": rng.gamma(20, 0.1, size=4000),
        }),
        algorithm=algo,
        log_marginal_likelihood=-43.2,
    )
    m1 = SampledPosteriorFit(
        name="extra ~ group",
        draws=pd.DataFrame({
            "b_Intercept": rng.normal(0.75, 0.55, size=4000),
            "b_group2": rng.normal(1.58, 0.8, size=4000),
            "sigma": rng.gamma(20, 0.09, size=4000),
        }),
        algorithm=algo,
        log_marginal_likelihood=-42.9,
    )

    engine = WeightedPosteriorEngine(WeightedPosteriorConfig(random_seed=1))
    results = engine.run([m0, m1])

    print(f"\n✓ Pooled {results.total_draws} draws")
    for name, p in zip(results.model_names, results.posterior_probabilities):
        print(f"  - {name:<20} p = {p:.3f} ({results.draws_per_model[name]} draws)")
    print(f"\n  b_group2 is 0 in {(results.posterior_draws['b_group2'] == 0).mean():.0%} of draws")

    checks = PooledPosteriorValidator().validate(results)
    print(PooledPosteriorValidator().generate_validation_report(checks))

    return results


def example_2_simulated_models():
    """Example 2: Simulated posteriors with an intercept-only denominator"""

    print("\n" + "=" * 80)
    print("EXAMPLE 2: On-demand Simulation")
    print("=" * 80)

    def simulator(index, iterations):
        if index == 0:
            raise UnsamplableModelError("Sampling from intercept-only model is not supported")
        rng = np.random.default_rng(index)
        draws = {"mu": rng.normal(1.5, 0.3, size=iterations),
                 "group-1": rng.normal(-0.8, 0.3, size=iterations)}
        if index == 2:
            draws["sig2_ID"] = rng.gamma(2.0, 0.5, size=iterations)
        return pd.DataFrame(draws)

    comparison = SimulationComparison(
        denominator="Intercept only",
        numerators=["group", "group + ID"],
        bayes_factors=[1.3, 48.7],
        simulator=simulator,
    )

    results = WeightedPosteriorEngine(WeightedPosteriorConfig(random_seed=2)).run([comparison])

    print(f"\n✓ Excluded: {results.excluded_models}")
    print(f"  Allocation: {results.draws_per_model}")
    print(results.posterior_draws.describe().T[["mean", "std"]])

    return results


if __name__ == "__main__":
    example_1_sampled_models()
    example_2_simulated_models()
