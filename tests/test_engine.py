"""
End-to-end Pooling Tests

Exercises weighted_posteriors / WeightedPosteriorEngine on sampled and
simulated models, including the intercept-only recovery path.

Run with: pytest tests/test_engine.py -v
"""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from bayespool import (
    InsufficientDraws,
    InvalidInput,
    PooledPosteriorValidator,
    SimulationComparison,
    SimulationFailure,
    UnsamplableModelWarning,
    WeightedPosteriorConfig,
    WeightedPosteriorEngine,
    weighted_posteriors,
)


def run_engine(models, seed=42, **kwargs):
    bayes_factors = kwargs.pop("bayes_factors", None)
    config = WeightedPosteriorConfig(random_seed=seed, verbose=False, **kwargs)
    return WeightedPosteriorEngine(config).run(models, bayes_factors=bayes_factors)


# ============================================================================
# SAMPLED MODELS
# ============================================================================

class TestSampledModels:

    def test_equal_evidence_splits_evenly(self, make_fit):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 1.0])

        assert results.total_budget == 1000
        assert results.allocation.tolist() == [500, 500]
        assert len(results.posterior_draws) == 1000

    def test_bayes_factor_of_ten(self, make_fit):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 10.0])

        np.testing.assert_allclose(results.posterior_probabilities, [1 / 11, 10 / 11])
        assert results.allocation.tolist() == [91, 909]
        assert results.draws_per_model == {"m0": 91, "m1": 909}

    def test_missing_parameter_is_filled(self, make_fit):
        fits = [make_fit("A", ["alpha", "beta"]), make_fit("B", ["alpha"])]
        pooled = weighted_posteriors(fits[0], fits[1], bayes_factors=[1.0, 1.0], verbose=False, rng=0)

        assert list(pooled.columns) == ["alpha", "beta"]
        b_rows = pooled.iloc[500:]
        assert (b_rows["beta"] == 0).all()
        assert (pooled.iloc[:500]["beta"] != 0).all()

    def test_missing_value_is_configurable(self, make_fit):
        fits = [make_fit("A", ["alpha", "beta"]), make_fit("B", ["alpha"])]
        pooled = weighted_posteriors(fits, bayes_factors=[1.0, 1.0], missing=np.nan, verbose=False, rng=0)

        assert pooled.iloc[500:]["beta"].isna().all()

    def test_single_model(self, make_fit):
        fit = make_fit("only", ["alpha", "beta"])
        results = run_engine([fit], bayes_factors=[1.0])

        np.testing.assert_allclose(results.posterior_probabilities, [1.0])
        assert results.allocation.tolist() == [1000]
        pooled = results.posterior_draws
        assert list(pooled.columns) == ["alpha", "beta"]
        np.testing.assert_array_equal(np.sort(pooled["alpha"]), fit.draws["alpha"])

    def test_prior_odds(self, make_fit):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 1.0], prior_odds=[3.0])

        np.testing.assert_allclose(results.prior_probabilities, [0.25, 0.75])
        assert results.allocation.tolist() == [250, 750]

    def test_budget_from_most_constrained_model(self, make_fit):
        fits = [
            make_fit("m0", ["alpha"], chains=4, iterations=1000, warmup=500),  # 2000
            make_fit("m1", ["alpha"], chains=2, iterations=700, warmup=200),   # 1000
        ]
        results = run_engine(fits, bayes_factors=[1.0, 3.0])

        assert results.total_budget == 1000
        assert results.allocation.tolist() == [250, 750]

    def test_bayes_factors_from_marginal_likelihoods(self, make_fit):
        fits = [
            make_fit("m0", ["alpha"], log_ml=-50.0),
            make_fit("m1", ["alpha", "beta"], log_ml=-50.0 + np.log(10.0)),
        ]
        results = run_engine(fits)
        assert results.allocation.tolist() == [91, 909]

    def test_decisive_marginal_likelihood_gap(self, make_fit):
        # log BF of 800 cannot be exponentiated
        fits = [
            make_fit("m0", ["alpha"], log_ml=-2000.0),
            make_fit("m1", ["alpha"], log_ml=-1200.0),
        ]
        results = run_engine(fits)

        np.testing.assert_allclose(results.posterior_probabilities, [0.0, 1.0], atol=1e-12)
        assert results.allocation.tolist() == [0, 1000]
        assert len(results.posterior_draws) == 1000

    def test_custom_comparison_collaborator(self, make_fit):
        calls = []

        def comparison(models, verbose):
            calls.append((len(models), verbose))
            return [1.0, 4.0]

        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        config = WeightedPosteriorConfig(random_seed=0, verbose=False)
        results = WeightedPosteriorEngine(config).run(fits, comparison=comparison)

        assert calls == [(2, False)]
        assert results.allocation.tolist() == [200, 800]

    def test_effects_filter_reaches_extraction(self, make_fit):
        fits = [make_fit("m0", ["b_Intercept", "sd_subject__Intercept"])]
        fixed = weighted_posteriors(fits, bayes_factors=[1.0], verbose=False, rng=0)
        everything = weighted_posteriors(fits, bayes_factors=[1.0], effects="all", verbose=False, rng=0)

        assert list(fixed.columns) == ["b_Intercept"]
        assert list(everything.columns) == ["b_Intercept", "sd_subject__Intercept"]

    def test_same_seed_same_pooled_draws(self, make_fit):
        fits = [make_fit("A", ["alpha", "beta"]), make_fit("B", ["alpha"])]
        first = weighted_posteriors(fits, bayes_factors=[1.0, 2.0], verbose=False, rng=11)
        second = weighted_posteriors(fits, bayes_factors=[1.0, 2.0], verbose=False, rng=11)
        pd.testing.assert_frame_equal(first, second)

    def test_insufficient_draws(self, make_fit):
        # metadata promises 1000 draws but only 100 are stored
        fits = [make_fit("thinned", ["alpha"], n_draws=100), make_fit("m1", ["alpha"])]
        with pytest.raises(InsufficientDraws):
            run_engine(fits, bayes_factors=[1.0, 1.0])

    @pytest.mark.parametrize("bayes_factors, prior_odds", [
        ([1.0, 2.0, 3.0], None),   # one score too many
        ([1.0, -2.0], None),       # negative score
        ([1.0, 2.0], [1.0, 1.0]),  # one prior odds too many
    ])
    def test_invalid_input(self, make_fit, bayes_factors, prior_odds):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        with pytest.raises(InvalidInput):
            run_engine(fits, bayes_factors=bayes_factors, prior_odds=prior_odds)

    def test_duplicate_model_names(self, make_fit):
        fits = [make_fit("m", ["alpha", "beta"]), make_fit("m", ["alpha"])]
        with pytest.raises(InvalidInput, match="unique"):
            run_engine(fits, bayes_factors=[1.0, 1.0])

    def test_no_partial_result_on_failure(self, make_fit):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"], n_draws=10)]
        engine = WeightedPosteriorEngine(WeightedPosteriorConfig(verbose=False))
        with pytest.raises(InsufficientDraws):
            engine.run(fits, bayes_factors=[1.0, 1.0])
        assert engine.results is None


# ============================================================================
# SIMULATED MODELS
# ============================================================================

class TestSimulatedModels:

    def test_all_models_sampled(self, samplable_comparison):
        results = run_engine([samplable_comparison])

        assert results.total_budget == 4000
        np.testing.assert_allclose(results.posterior_probabilities, [0.1, 0.3, 0.6])
        assert results.allocation.tolist() == [400, 1200, 2400]
        assert list(results.posterior_draws.columns) == ["mu", "beta_group", "sig2_ID"]
        assert len(results.posterior_draws) == 4000
        assert results.excluded_models == {}

    def test_intercept_only_denominator_is_dropped(self, intercept_only_comparison):
        with pytest.warns(UnsamplableModelWarning, match=r"model prob = 0\.1\b"):
            results = run_engine([intercept_only_comparison])

        assert results.model_names == ["group", "group + ID"]
        np.testing.assert_allclose(results.posterior_probabilities, [1 / 3, 2 / 3])
        assert abs(results.posterior_probabilities.sum() - 1.0) < 1e-9
        assert results.allocation.tolist() == [1333, 2667]
        assert len(results.posterior_draws) == 4000
        assert list(results.excluded_models) == ["Intercept only"]
        assert results.excluded_models["Intercept only"] == pytest.approx(0.1)

    def test_dropped_model_is_logged(self, intercept_only_comparison, caplog):
        with caplog.at_level(logging.WARNING, logger="bayespool"):
            with pytest.warns(UnsamplableModelWarning):
                run_engine([intercept_only_comparison])
        assert "Intercept only" in caplog.text

    @pytest.mark.parametrize("error_type", [RuntimeError, SimulationFailure])
    def test_unknown_simulation_failure_is_fatal(self, error_type):
        def simulator(index, iterations):
            if index == 0:
                raise error_type("Sampler diverged")
            return pd.DataFrame({"mu": np.zeros(iterations)})

        comparison = SimulationComparison(
            denominator="m0", numerators=["m1"], bayes_factors=[2.0], simulator=simulator
        )
        with pytest.raises(error_type, match="Sampler diverged"):
            run_engine([comparison])

    def test_bayes_factors_come_from_the_comparison(self, samplable_comparison):
        with pytest.raises(InvalidInput):
            run_engine([samplable_comparison], bayes_factors=[1.0, 1.0, 1.0])

    def test_custom_simulation_budget(self, samplable_comparison):
        results = run_engine([samplable_comparison], simulation_draws=1000)
        assert results.allocation.tolist() == [100, 300, 600]


# ============================================================================
# RESULTS AND VALIDATION
# ============================================================================

class TestResults:

    def test_validator_passes_on_engine_output(self, make_fit):
        fits = [make_fit("A", ["alpha", "beta"]), make_fit("B", ["alpha", "gamma"]), make_fit("C", ["delta"])]
        results = run_engine(fits, bayes_factors=[1.0, 2.5, 0.7])

        validator = PooledPosteriorValidator()
        checks = validator.validate(results)

        assert checks['overall_pass'], checks
        report = validator.generate_validation_report(checks)
        assert "OVERALL: PASS" in report

    def test_validator_flags_bad_fill(self, make_fit):
        fits = [make_fit("A", ["alpha", "beta"]), make_fit("B", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 1.0])
        results.posterior_draws.loc[999, "beta"] = 3.0

        checks = PooledPosteriorValidator().validate(results)

        assert not checks['missing_fill']['passed']
        assert not checks['overall_pass']

    def test_diversity_metrics(self, make_fit):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 1.0])

        metrics = results.get_model_diversity_metrics()
        assert metrics['effective_number_of_models'] == pytest.approx(2.0)
        assert metrics['normalized_entropy'] == pytest.approx(1.0)
        assert metrics['max_weight'] == pytest.approx(0.5)

    def test_save_results(self, make_fit, tmp_path):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        results = run_engine(fits, bayes_factors=[1.0, 10.0])

        path = tmp_path / "results.json"
        results.save_results(path)

        saved = json.loads(path.read_text())
        assert [m["draws"] for m in saved["models"]] == [91, 909]
        assert saved["summary"]["total_draws"] == 1000

    def test_verbose_logs_phases(self, make_fit, caplog):
        fits = [make_fit("m0", ["alpha"]), make_fit("m1", ["alpha"])]
        with caplog.at_level(logging.INFO, logger="bayespool"):
            weighted_posteriors(fits, bayes_factors=[1.0, 1.0], rng=0)
        assert "Phase 1" in caplog.text
        assert "Phase 3" in caplog.text
