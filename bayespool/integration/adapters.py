"""
Model Posterior Adapters

Thin extraction shims between fitted-model containers and the pooling core.
Each adapter offers the same two operations:

1. extract_draws(...)   -> a DrawTable (pandas DataFrame)
2. algorithm_info(...)  -> AlgorithmInfo, or None when the budget is fixed

The set of representations is closed (ModelRepresentation); a new one is
added by extending the enum and ADAPTERS together.
"""

from typing import List, Dict, Optional, Sequence, Any, Callable, Union
from abc import ABC, abstractmethod
import re
import numpy as np
import pandas as pd
import logging

from ..core.errors import InvalidInput
from ..core.models import (
    AlgorithmInfo,
    ComponentFilter,
    ComponentType,
    EffectsFilter,
    EffectType,
    ModelRepresentation,
    ParameterRole,
    SampledPosteriorFit,
    SimulationComparison,
    DEFAULT_SIMULATION_DRAWS,
)

logger = logging.getLogger(__name__)


# Naming conventions of common samplers (brms, rstanarm)
RANDOM_EFFECT_PATTERN = re.compile(r"^(r_|sd_|cor_|b\[|Sigma\[)")
ZERO_INFLATED_PATTERN = re.compile(r"(^|[_\[.])zi($|[_\].])")
# Sampler diagnostics and log densities (lp__, accept_stat__, lprior, log_lik[1])
DIAGNOSTIC_PATTERN = re.compile(r"(__$|^lprior$|^log_lik(\[|$))")


def is_diagnostic(name: str) -> bool:
    """Whether a column holds sampler output rather than a model parameter"""
    return bool(DIAGNOSTIC_PATTERN.search(name))


def classify_parameter(name: str) -> ParameterRole:
    """Infer a parameter's role from its name"""
    effects = EffectType.RANDOM if RANDOM_EFFECT_PATTERN.search(name) else EffectType.FIXED
    component = (
        ComponentType.ZERO_INFLATED if ZERO_INFLATED_PATTERN.search(name)
        else ComponentType.CONDITIONAL
    )
    return ParameterRole(effects=effects, component=component)


class ModelPosteriorAdapter(ABC):
    """Base class for all adapters"""
    representation: ModelRepresentation

    @abstractmethod
    def extract_draws(self, model: Any, **kwargs) -> pd.DataFrame:
        ...

    @abstractmethod
    def algorithm_info(self, model: Any) -> Optional[AlgorithmInfo]:
        ...


# ============================================================================
# SAMPLED DRAWS
# ============================================================================

class SampledDrawsAdapter(ModelPosteriorAdapter):
    """Models that already hold their full posterior draw table"""
    representation = ModelRepresentation.SAMPLED

    def extract_draws(
        self,
        model: SampledPosteriorFit,
        effects: Union[EffectsFilter, str] = EffectsFilter.FIXED,
        component: Union[ComponentFilter, str] = ComponentFilter.CONDITIONAL,
        parameters: Optional[Sequence[str]] = None
    ) -> pd.DataFrame:
        """
        Filtered projection of the model's draws

        Args:
            model: Fitted model holding its draws
            effects: Keep fixed effects, random effects, or all
            component: Keep the conditional part, zero-inflated part, or all
            parameters: Optional explicit names; unknown names are ignored.
                Sampler diagnostics (lp__, lprior, ...) are dropped unless
                named here or given an explicit role.

        Returns:
            New DataFrame; the model's own table is left untouched
        """
        effects = EffectsFilter(effects)
        component = ComponentFilter(component)
        wanted = set(parameters) if parameters is not None else None

        keep = []
        for name in model.draws.columns:
            if wanted is not None and name not in wanted:
                continue
            explicit = (wanted is not None) or name in model.parameter_roles
            if not explicit and is_diagnostic(str(name)):
                continue
            role = model.parameter_roles.get(name) or classify_parameter(str(name))
            if effects != EffectsFilter.ALL and role.effects.value != effects.value:
                continue
            if component != ComponentFilter.ALL and role.component.value != component.value:
                continue
            keep.append(name)

        logger.debug(f"{model.name}: extracted {len(keep)}/{model.draws.shape[1]} parameters")
        return model.draws.loc[:, keep].copy()

    def algorithm_info(self, model: SampledPosteriorFit) -> AlgorithmInfo:
        return model.algorithm


# ============================================================================
# ON-DEMAND SIMULATION
# ============================================================================

class SimulationAdapter(ModelPosteriorAdapter):
    """
    Models whose posterior draws are simulated on request

    UnsamplableModelError from the simulator propagates typed so the engine
    can drop that model; every other exception propagates unchanged.
    """
    representation = ModelRepresentation.SIMULATION

    def extract_draws(
        self,
        model: SimulationComparison,
        index: int = 0,
        iterations: int = DEFAULT_SIMULATION_DRAWS
    ) -> pd.DataFrame:
        n_models = len(model.numerators) + 1
        if not 0 <= index < n_models:
            raise InvalidInput(f"Model index {index} out of range for {n_models} models")

        draws = model.simulator(index, iterations)

        if not isinstance(draws, pd.DataFrame):
            draws = pd.DataFrame(draws)
        if not draws.columns.is_unique:
            raise InvalidInput(f"Simulated draws for {model.model_names[index]} have duplicated parameter names")
        return draws

    def algorithm_info(self, model: SimulationComparison) -> None:
        return None


ADAPTERS: Dict[ModelRepresentation, ModelPosteriorAdapter] = {
    ModelRepresentation.SAMPLED: SampledDrawsAdapter(),
    ModelRepresentation.SIMULATION: SimulationAdapter(),
}


def get_adapter(representation: Union[ModelRepresentation, str]) -> ModelPosteriorAdapter:
    try:
        return ADAPTERS[ModelRepresentation(representation)]
    except ValueError as e:
        raise InvalidInput(f"Unsupported model representation: {representation}") from e


def _check_unique_names(names: List[str]):
    duplicated = sorted({name for name in names if names.count(name) > 1})
    if duplicated:
        raise InvalidInput(f"Model names must be unique, duplicated: {duplicated}")


def detect_representation(models: Sequence[Any]) -> ModelRepresentation:
    """
    Map the supplied models onto one representation

    Either one or more SampledPosteriorFit, or exactly one SimulationComparison.
    """
    if len(models) == 0:
        raise InvalidInput("No models supplied")

    if all(isinstance(m, SampledPosteriorFit) for m in models):
        _check_unique_names([m.name for m in models])
        return ModelRepresentation.SAMPLED

    if all(isinstance(m, SimulationComparison) for m in models):
        if len(models) > 1:
            raise InvalidInput("Pass a single SimulationComparison holding all models")
        _check_unique_names(models[0].model_names)
        return ModelRepresentation.SIMULATION

    kinds = sorted({type(m).__name__ for m in models})
    raise InvalidInput(f"Cannot pool models of types {kinds}; supply models of a single supported representation")


# ============================================================================
# BAYES FACTOR COLLABORATORS
# ============================================================================

BayesFactorProvider = Callable[[Sequence[SampledPosteriorFit], bool], Sequence[float]]


def log_bayes_factors_from_marginal_likelihoods(
    fits: Sequence[SampledPosteriorFit],
    verbose: bool = True
) -> np.ndarray:
    """
    Log Bayes factors of each fit against the first, from stored log marginal likelihoods

    log BF_i = log p(D | M_i) - log p(D | M_1), so log BF_1 = 0.
    Kept on the log scale: decisive evidence overflows exp().
    """
    missing = [fit.name for fit in fits if fit.log_marginal_likelihood is None]
    if missing:
        raise InvalidInput(
            f"Models {missing} carry no log marginal likelihood; pass bayes_factors explicitly"
        )

    log_ml = np.array([fit.log_marginal_likelihood for fit in fits], dtype=float)
    log_bf = log_ml - log_ml[0]

    if verbose:
        for fit, lbf in zip(fits, log_bf):
            logger.info(f"  {fit.name:<30} log(BF) = {lbf:>10.3f}")

    return log_bf


def bayes_factors_from_marginal_likelihoods(
    fits: Sequence[SampledPosteriorFit],
    verbose: bool = True
) -> np.ndarray:
    """BF_i = exp(log p(D | M_i) - log p(D | M_1)), so BF_1 = 1."""
    return np.exp(log_bayes_factors_from_marginal_likelihoods(fits, verbose))
