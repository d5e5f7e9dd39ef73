"""
Core Data Structures

Defines the fitted-model containers consumed by bayespool, with
Pydantic validation of algorithm metadata and draw tables.
"""

from typing import Optional, List, Dict, Callable
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
import numpy as np
import pandas as pd
from enum import Enum


# Fixed draw budget for simulation-based models (no algorithm metadata)
DEFAULT_SIMULATION_DRAWS = 4000


class ModelRepresentation(str, Enum):
    """Supported fitted-model representations (closed set)"""
    SAMPLED = "sampled"  # pre-computed posterior draws
    SIMULATION = "simulation"  # draws simulated on demand


class EffectsFilter(str, Enum):
    """Which parameter roles to extract"""
    FIXED = "fixed"
    RANDOM = "random"
    ALL = "all"


class ComponentFilter(str, Enum):
    """Which model component to extract"""
    CONDITIONAL = "conditional"
    ZERO_INFLATED = "zero_inflated"
    ALL = "all"

    @classmethod
    def _missing_(cls, value):
        if value == "zi":
            return cls.ZERO_INFLATED
        return None


class EffectType(str, Enum):
    FIXED = "fixed"
    RANDOM = "random"


class ComponentType(str, Enum):
    CONDITIONAL = "conditional"
    ZERO_INFLATED = "zero_inflated"


# ============================================================================
# ALGORITHM METADATA
# ============================================================================

class AlgorithmInfo(BaseModel):
    """Sampler settings of a fitted model, used to bound draw budgets"""
    chains: int = Field(ge=1, description="Number of MCMC chains")
    iterations: int = Field(ge=1, description="Iterations per chain, warm-up included")
    warmup: int = Field(default=0, ge=0, description="Warm-up iterations per chain")

    @property
    def total_samples(self) -> int:
        """Post-warm-up draws across all chains"""
        return self.chains * (self.iterations - self.warmup)


class ParameterRole(BaseModel):
    """Role of a single parameter within its model"""
    effects: EffectType = EffectType.FIXED
    component: ComponentType = ComponentType.CONDITIONAL


# ============================================================================
# FITTED MODEL CONTAINERS
# ============================================================================

class SampledPosteriorFit(BaseModel):
    """
    A fitted model that already holds its posterior draws

    Rows of `draws` are independent posterior draws, columns are named
    parameters. The table is treated as read-only.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    draws: pd.DataFrame
    algorithm: AlgorithmInfo
    parameter_roles: Dict[str, ParameterRole] = Field(default_factory=dict)
    log_marginal_likelihood: Optional[float] = Field(
        default=None,
        description="Pre-computed log marginal likelihood (e.g. from bridge sampling)"
    )

    @field_validator('draws')
    def validate_draws(cls, v):
        if not isinstance(v, pd.DataFrame):
            raise ValueError("draws must be a pandas DataFrame")
        if not v.columns.is_unique:
            duplicated = list(v.columns[v.columns.duplicated()])
            raise ValueError(f"Parameter names must be unique, duplicated: {duplicated}")
        return v

    @field_validator('log_marginal_likelihood')
    def validate_log_ml(cls, v):
        if v is not None and not np.isfinite(v):
            raise ValueError(f"log_marginal_likelihood must be finite, got {v}")
        return v

    @property
    def parameter_names(self) -> List[str]:
        return [str(c) for c in self.draws.columns]


class SimulationComparison(BaseModel):
    """
    A Bayes-factor comparison whose posteriors are simulated on demand

    Index 0 is the denominator model; indices 1..K are the numerators in
    order. `bayes_factors[k]` is numerator k+1 relative to the denominator.
    `simulator(index, iterations)` must return a DataFrame of draws, and
    raise UnsamplableModelError for models it cannot sample (typically an
    intercept-only denominator).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    denominator: str
    numerators: List[str] = Field(min_length=1)
    bayes_factors: List[float]
    simulator: Callable[[int, int], pd.DataFrame]

    @field_validator('bayes_factors')
    def validate_bayes_factors(cls, v):
        if not all(np.isfinite(bf) and bf > 0 for bf in v):
            raise ValueError(f"Bayes factors must be positive and finite, got {v}")
        return v

    @model_validator(mode='after')
    def validate_lengths(self):
        if len(self.bayes_factors) != len(self.numerators):
            raise ValueError(
                f"Got {len(self.bayes_factors)} Bayes factors for {len(self.numerators)} numerator models"
            )
        return self

    @property
    def model_names(self) -> List[str]:
        """Denominator first, then numerators"""
        return [self.denominator] + list(self.numerators)

    @property
    def scores(self) -> np.ndarray:
        """Bayes factors with the denominator's own score of 1 prepended"""
        return np.concatenate([[1.0], np.asarray(self.bayes_factors, dtype=float)])
