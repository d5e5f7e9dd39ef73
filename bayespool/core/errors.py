"""
Error taxonomy for bayespool

All fatal errors abort the whole call; the only recovered failure is
UnsamplableModelError, which the engine turns into an UnsamplableModelWarning.
"""

from typing import Optional


class BayesPoolError(Exception):
    """Base class for all bayespool errors"""


class InvalidInput(BayesPoolError, ValueError):
    """Malformed or inconsistent arguments (lengths, signs, sums, budgets)"""


class InsufficientDraws(BayesPoolError):
    """A model was allocated more draws than it holds"""

    def __init__(self, model_index: int, requested: int, available: int, model_name: Optional[str] = None):
        self.model_index = model_index
        self.requested = requested
        self.available = available
        self.model_name = model_name
        label = model_name if model_name is not None else f"#{model_index}"
        super().__init__(
            f"Model {label} was allocated {requested} draws but only {available} are available"
        )


class UnsamplableModelError(BayesPoolError):
    """
    Raised deliberately by a simulator that cannot produce draws for a model,
    e.g. an intercept-only denominator model.
    """

    def __init__(self, message: str = "Sampling from intercept-only model is not supported", model_name: Optional[str] = None):
        self.model_name = model_name
        super().__init__(message)


class SimulationFailure(BayesPoolError):
    """Generic simulation failure. Never recovered by the engine."""


class UnsamplableModelWarning(UserWarning):
    """Emitted when an unsamplable model is dropped from the pooled posterior"""
