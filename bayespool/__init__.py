"""
bayespool: Bayesian model-averaged posterior draws

Pools posterior draws across fitted models, each contributing in
proportion to its posterior model probability.
"""

from .core.errors import (
    BayesPoolError,
    InvalidInput,
    InsufficientDraws,
    UnsamplableModelError,
    SimulationFailure,
    UnsamplableModelWarning,
)

from .core.models import (
    AlgorithmInfo,
    ParameterRole,
    SampledPosteriorFit,
    SimulationComparison,
    ModelRepresentation,
    EffectsFilter,
    ComponentFilter,
    EffectType,
    ComponentType,
    DEFAULT_SIMULATION_DRAWS,
)

from .bma.weights import (
    ModelProbabilityEngine,
    ModelProbabilities,
    SampleAllocator,
    SampleBudgetPlanner,
)

from .bma.resampling import (
    ParameterSetReconciler,
    Reconciliation,
    PosteriorResampler,
)

from .bma.engine import (
    WeightedPosteriorEngine,
    WeightedPosteriorConfig,
    WeightedPosteriorResults,
    weighted_posteriors,
)

from .integration.adapters import (
    ModelPosteriorAdapter,
    SampledDrawsAdapter,
    SimulationAdapter,
    ADAPTERS,
    get_adapter,
    detect_representation,
    bayes_factors_from_marginal_likelihoods,
    log_bayes_factors_from_marginal_likelihoods,
)

from .utils.validation import PooledPosteriorValidator

__version__ = "0.1.0"

__all__ = [
    # Errors
    "BayesPoolError",
    "InvalidInput",
    "InsufficientDraws",
    "UnsamplableModelError",
    "SimulationFailure",
    "UnsamplableModelWarning",

    # Data model
    "AlgorithmInfo",
    "ParameterRole",
    "SampledPosteriorFit",
    "SimulationComparison",
    "ModelRepresentation",
    "EffectsFilter",
    "ComponentFilter",
    "EffectType",
    "ComponentType",
    "DEFAULT_SIMULATION_DRAWS",

    # Weights and budgets
    "ModelProbabilityEngine",
    "ModelProbabilities",
    "SampleAllocator",
    "SampleBudgetPlanner",

    # Resampling
    "ParameterSetReconciler",
    "Reconciliation",
    "PosteriorResampler",

    # Engine
    "WeightedPosteriorEngine",
    "WeightedPosteriorConfig",
    "WeightedPosteriorResults",
    "weighted_posteriors",

    # Adapters
    "ModelPosteriorAdapter",
    "SampledDrawsAdapter",
    "SimulationAdapter",
    "ADAPTERS",
    "get_adapter",
    "detect_representation",
    "bayes_factors_from_marginal_likelihoods",
    "log_bayes_factors_from_marginal_likelihoods",

    # Validation
    "PooledPosteriorValidator",
]
