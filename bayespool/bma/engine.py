"""
Weighted Posterior Engine

Pools posterior draws across models, weighted by posterior model probability:
- Phase 1: Model probabilities from Bayes factors and prior odds
- Phase 2: Draw budget and proportional allocation
- Phase 3: Draw extraction, parameter reconciliation and resampling
"""

from typing import List, Dict, Optional, Sequence, Any, Union
from dataclasses import dataclass, field
import numpy as np
import pandas as pd
from pathlib import Path
import json
import logging
import warnings
from datetime import datetime

from ..core.errors import InvalidInput, UnsamplableModelError, UnsamplableModelWarning
from ..core.models import (
    ComponentFilter,
    EffectsFilter,
    ModelRepresentation,
    SampledPosteriorFit,
    SimulationComparison,
    DEFAULT_SIMULATION_DRAWS,
)
from ..integration.adapters import (
    BayesFactorProvider,
    log_bayes_factors_from_marginal_likelihoods,
    detect_representation,
    get_adapter,
)
from .resampling import ParameterSetReconciler, PosteriorResampler
from .weights import ModelProbabilityEngine, SampleAllocator, SampleBudgetPlanner

logger = logging.getLogger(__name__)


@dataclass
class WeightedPosteriorConfig:
    """Configuration for a pooling run"""
    # Model probabilities
    prior_odds: Optional[List[float]] = None  # one per non-denominator model

    # Pooled output
    missing: float = 0.0  # value for parameters a model does not estimate
    verbose: bool = True

    # Draw extraction (sampled models)
    effects: EffectsFilter = EffectsFilter.FIXED
    component: ComponentFilter = ComponentFilter.CONDITIONAL
    parameters: Optional[List[str]] = None

    # Draw extraction (simulated models)
    simulation_draws: int = DEFAULT_SIMULATION_DRAWS

    # Reproducibility
    random_seed: Optional[int] = None


@dataclass
class WeightedPosteriorResults:
    """Results of a pooling run"""
    posterior_draws: pd.DataFrame
    model_names: List[str]
    prior_probabilities: np.ndarray
    posterior_probabilities: np.ndarray  # as used for allocation
    allocation: np.ndarray
    total_budget: int

    # Models dropped because they could not be sampled, with their original probability
    excluded_models: Dict[str, float] = field(default_factory=dict)

    # Parameters each model actually estimates (before missing-fill)
    model_parameters: Dict[str, List[str]] = field(default_factory=dict)
    missing: float = 0.0

    # Metadata
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    run_time_seconds: float = 0.0

    @property
    def total_draws(self) -> int:
        return len(self.posterior_draws)

    @property
    def draws_per_model(self) -> Dict[str, int]:
        return {name: int(n) for name, n in zip(self.model_names, self.allocation)}

    def summary(self) -> Dict[str, Any]:
        """Generate summary of model weights and allocation"""
        return {
            "n_models": len(self.model_names),
            "total_budget": self.total_budget,
            "total_draws": self.total_draws,
            "top_model_weight": float(np.max(self.posterior_probabilities)) if self.model_names else 0.0,
            "model_weights": {
                name: float(p) for name, p in zip(self.model_names, self.posterior_probabilities)
            },
            "draws_per_model": self.draws_per_model,
            "excluded_models": dict(self.excluded_models),
            "parameters": [str(c) for c in self.posterior_draws.columns],
        }

    def compute_effective_number_of_models(self) -> float:
        """
        Effective number of models (ESS of model weights)

        ESS = 1 / sum(w_m^2)

        Interpretation:
        - ESS = 1: Single model dominates
        - ESS = M: Uniform weights (maximum uncertainty)
        """
        weights = np.asarray(self.posterior_probabilities, dtype=float)
        return float(1.0 / np.sum(weights ** 2))

    def get_model_diversity_metrics(self) -> Dict[str, Any]:
        """
        Diversity of the posterior model weights

        Returns:
            Dict with metrics:
            - effective_number_of_models: ESS of weights
            - entropy: Shannon entropy of weight distribution
            - normalized_entropy: entropy / log(M)
            - max_weight: Weight of top model
        """
        weights = np.asarray(self.posterior_probabilities, dtype=float)

        ess = self.compute_effective_number_of_models()
        nonzero = weights[weights > 0]
        entropy = float(-np.sum(nonzero * np.log(nonzero)))
        max_entropy = np.log(len(weights))
        normalized_entropy = entropy / max_entropy if max_entropy > 0 else 0.0
        max_weight = float(np.max(weights))

        return {
            'effective_number_of_models': ess,
            'entropy': entropy,
            'normalized_entropy': normalized_entropy,
            'max_weight': max_weight,
            'interpretation': self._interpret_diversity(ess, max_weight)
        }

    def _interpret_diversity(self, ess: float, max_weight: float) -> str:
        if max_weight > 0.8:
            return f"Single model dominates (ESS={ess:.1f}) - pooled draws mostly from one model"
        elif ess > len(self.model_names) * 0.7:
            return f"High diversity (ESS={ess:.1f}) - substantial model uncertainty"
        else:
            return f"Moderate diversity (ESS={ess:.1f})"

    def save_results(self, filepath: Union[str, Path]):
        """Save weights and allocation to JSON (draws are not included)"""
        results_dict = {
            "models": [
                {
                    "name": name,
                    "prior_probability": float(prior),
                    "posterior_probability": float(post),
                    "draws": int(n),
                }
                for name, prior, post, n in zip(
                    self.model_names,
                    self.prior_probabilities,
                    self.posterior_probabilities,
                    self.allocation,
                )
            ],
            "summary": self.summary(),
            "timestamp": self.timestamp,
        }

        with open(filepath, 'w') as f:
            json.dump(results_dict, f, indent=2)

        logger.info(f"Results saved to {filepath}")


class WeightedPosteriorEngine:
    """
    Bayesian model-averaged posterior draws

    Phase 1: Posterior model probabilities
    Phase 2: Draw budget and allocation
    Phase 3: Proportional resampling and pooling
    """

    def __init__(self, config: Optional[WeightedPosteriorConfig] = None, rng: Optional[np.random.Generator] = None):
        self.config = config or WeightedPosteriorConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)
        self.results: Optional[WeightedPosteriorResults] = None

    def run(
        self,
        models: Sequence[Union[SampledPosteriorFit, SimulationComparison]],
        bayes_factors: Optional[Sequence[float]] = None,
        comparison: Optional[BayesFactorProvider] = None
    ) -> WeightedPosteriorResults:
        """
        Pool posterior draws across models

        Args:
            models: Fitted models (first one is the denominator), or a single
                SimulationComparison
            bayes_factors: Optional Bayes factors against the first model,
                including its own score of 1
            comparison: Optional callable (models, verbose) -> Bayes factors,
                used when bayes_factors is not given

        Returns:
            WeightedPosteriorResults
        """
        start_time = datetime.now()
        models = list(models)
        representation = detect_representation(models)

        if representation == ModelRepresentation.SIMULATION:
            if bayes_factors is not None or comparison is not None:
                raise InvalidInput("Bayes factors of a SimulationComparison are read from the comparison itself")
            results = self._run_simulation(models[0])
        else:
            results = self._run_sampled(models, bayes_factors, comparison)

        results.run_time_seconds = (datetime.now() - start_time).total_seconds()
        self.results = results

        if self.config.verbose:
            logger.info(f"Pooled {results.total_draws} draws over {len(results.posterior_draws.columns)} parameters")
            for name, p in zip(results.model_names, results.posterior_probabilities):
                logger.info(f"  {name}: {p:.4f} ({results.draws_per_model[name]} draws)")

        return results

    def _model_probabilities(self, scores: Sequence[float], log_scores: bool = False):
        probabilities = ModelProbabilityEngine.compute(scores, self.config.prior_odds, log_scores=log_scores)
        if self.config.verbose:
            logger.info("Phase 1: Posterior model probabilities")
            logger.info(f"  prior:     {np.round(probabilities.prior, 4).tolist()}")
            logger.info(f"  posterior: {np.round(probabilities.posterior, 4).tolist()}")
        return probabilities

    def _allocate(self, probabilities: np.ndarray, budget: int) -> np.ndarray:
        allocation = SampleAllocator.allocate(probabilities, budget)
        if self.config.verbose:
            logger.info(f"Phase 2: Budget {budget} draws, allocation {allocation.tolist()}")
        return allocation

    def _run_sampled(
        self,
        fits: List[SampledPosteriorFit],
        bayes_factors: Optional[Sequence[float]],
        comparison: Optional[BayesFactorProvider]
    ) -> WeightedPosteriorResults:
        adapter = get_adapter(ModelRepresentation.SAMPLED)

        # stored marginal likelihoods stay on the log scale
        log_scores = bayes_factors is None and comparison is None
        if log_scores:
            scores = log_bayes_factors_from_marginal_likelihoods(fits, self.config.verbose)
        elif bayes_factors is None:
            scores = comparison(fits, self.config.verbose)
        else:
            scores = bayes_factors
        scores = np.asarray(scores, dtype=float)
        if scores.size != len(fits):
            raise InvalidInput(f"Got {scores.size} Bayes factors for {len(fits)} models")

        probabilities = self._model_probabilities(scores, log_scores=log_scores)

        budget = SampleBudgetPlanner.plan(algorithms=[adapter.algorithm_info(fit) for fit in fits])
        allocation = self._allocate(probabilities.posterior, budget)

        tables = [
            adapter.extract_draws(
                fit,
                effects=self.config.effects,
                component=self.config.component,
                parameters=self.config.parameters,
            )
            for fit in fits
        ]
        names = [fit.name for fit in fits]

        return WeightedPosteriorResults(
            posterior_draws=self._pool(tables, allocation, names),
            model_names=names,
            prior_probabilities=probabilities.prior,
            posterior_probabilities=probabilities.posterior,
            allocation=allocation,
            total_budget=budget,
            model_parameters={name: list(t.columns) for name, t in zip(names, tables)},
            missing=self.config.missing,
        )

    def _run_simulation(self, comparison: SimulationComparison) -> WeightedPosteriorResults:
        adapter = get_adapter(ModelRepresentation.SIMULATION)

        probabilities = self._model_probabilities(comparison.scores)
        prior = probabilities.prior
        posterior = probabilities.posterior
        names = comparison.model_names

        budget = SampleBudgetPlanner.plan(fixed_budget=self.config.simulation_draws)
        allocation = self._allocate(posterior, budget)

        # numerators first; the denominator is the one that may be unsamplable
        numerator_tables = [
            adapter.extract_draws(comparison, index=idx, iterations=budget)
            for idx in range(1, len(names))
        ]

        excluded = {}
        try:
            tables = [adapter.extract_draws(comparison, index=0, iterations=budget)] + numerator_tables
        except UnsamplableModelError:
            dropped_probability = float(posterior[0])
            message = (
                f"Cannot sample from model '{names[0]}' with intercept only "
                f"(model prob = {round(dropped_probability, 2)}). Omitting the intercept model."
            )
            warnings.warn(message, UnsamplableModelWarning, stacklevel=3)
            logger.warning(message)

            excluded[names[0]] = dropped_probability
            keep = list(range(1, len(names)))
            prior = ModelProbabilityEngine.renormalize(prior, keep)
            posterior = ModelProbabilityEngine.renormalize(posterior, keep)
            allocation = self._allocate(posterior, budget)
            names = names[1:]
            tables = numerator_tables

        return WeightedPosteriorResults(
            posterior_draws=self._pool(tables, allocation, names),
            model_names=names,
            prior_probabilities=prior,
            posterior_probabilities=posterior,
            allocation=allocation,
            total_budget=budget,
            excluded_models=excluded,
            model_parameters={name: list(t.columns) for name, t in zip(names, tables)},
            missing=self.config.missing,
        )

    def _pool(self, tables: List[pd.DataFrame], allocation: np.ndarray, names: List[str]) -> pd.DataFrame:
        reconciliation = ParameterSetReconciler.reconcile(tables)
        if self.config.verbose:
            logger.info(f"Phase 3: Pooling {len(reconciliation.union)} parameters")
            for name, absent in zip(names, reconciliation.missing):
                if absent:
                    logger.info(f"  {name}: filling {absent} with {self.config.missing}")

        resampler = PosteriorResampler(self.rng, missing=self.config.missing)
        return resampler.resample(tables, allocation, reconciliation.union, model_names=names)


def weighted_posteriors(
    *models: Union[SampledPosteriorFit, SimulationComparison],
    prior_odds: Optional[Sequence[float]] = None,
    missing: float = 0.0,
    verbose: bool = True,
    bayes_factors: Optional[Sequence[float]] = None,
    comparison: Optional[BayesFactorProvider] = None,
    effects: Union[EffectsFilter, str] = EffectsFilter.FIXED,
    component: Union[ComponentFilter, str] = ComponentFilter.CONDITIONAL,
    parameters: Optional[Sequence[str]] = None,
    rng: Union[np.random.Generator, int, None] = None
) -> pd.DataFrame:
    """
    Posterior draws of parameters, weighted across models

    Each model contributes draws in proportion to its posterior model
    probability. Parameters absent from a model are set to `missing`.

    Args:
        *models: Fitted models (the first is the denominator), or a single
            SimulationComparison
        prior_odds: Prior odds of each model against the first (default: 1)
        missing: Value for parameters a model does not estimate
        verbose: Log the model probabilities and allocation
        bayes_factors: Bayes factors against the first model, including 1 for it
        comparison: Callable (models, verbose) -> Bayes factors
        effects: "fixed", "random" or "all"
        component: "conditional", "zi"/"zero_inflated" or "all"
        parameters: Explicit parameter names to keep
        rng: numpy Generator or seed

    Returns:
        DataFrame of pooled draws
    """
    if len(models) == 1 and isinstance(models[0], (list, tuple)):
        models = tuple(models[0])

    config = WeightedPosteriorConfig(
        prior_odds=list(prior_odds) if prior_odds is not None else None,
        missing=missing,
        verbose=verbose,
        effects=EffectsFilter(effects),
        component=ComponentFilter(component),
        parameters=list(parameters) if parameters is not None else None,
    )
    engine = WeightedPosteriorEngine(config, rng=np.random.default_rng(rng))
    return engine.run(models, bayes_factors=bayes_factors, comparison=comparison).posterior_draws
