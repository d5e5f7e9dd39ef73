"""
Model Weights and Draw Budgets

- ModelProbabilityEngine: Bayes factors + prior odds -> model probabilities
- SampleAllocator: probabilities + total budget -> draws per model
- SampleBudgetPlanner: algorithm metadata -> total budget
"""

from typing import List, Optional, Sequence
from dataclasses import dataclass
import numpy as np
from scipy.special import logsumexp
import logging

from ..core.errors import InvalidInput
from ..core.models import AlgorithmInfo

logger = logging.getLogger(__name__)

PROBABILITY_TOLERANCE = 1e-6


@dataclass(frozen=True)
class ModelProbabilities:
    """Prior and posterior model probabilities, aligned by model index"""
    prior: np.ndarray
    posterior: np.ndarray


def _as_vector(values, name: str) -> np.ndarray:
    try:
        vector = np.asarray(values, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{name} must be a sequence of numbers: {e}") from e
    if not np.all(np.isfinite(vector)):
        raise InvalidInput(f"{name} must be finite, got {vector.tolist()}")
    return vector


class ModelProbabilityEngine:
    """
    Posterior model probabilities from Bayes factors

    P(M_i | D) = prior_odds_i * BF_i / sum_j(prior_odds_j * BF_j)

    The first model is the denominator: its score is 1 and its prior odds
    are fixed to 1 (prepended to the user-supplied prior odds).
    Normalization is done in log space to stay stable for extreme factors.
    """

    @staticmethod
    def compute(
        scores: Sequence[float],
        prior_odds: Optional[Sequence[float]] = None,
        log_scores: bool = False
    ) -> ModelProbabilities:
        """
        Args:
            scores: Bayes factors against the first model, including its own 1
            prior_odds: Prior odds of each non-denominator model (default: 1)
            log_scores: `scores` are log Bayes factors (the first one is 0)
        """
        scores = _as_vector(scores, "scores")
        if scores.size == 0:
            raise InvalidInput("At least one model score is required")

        if prior_odds is None:
            prior_odds = np.ones(scores.size - 1)
        prior_odds = _as_vector(prior_odds, "prior_odds")

        if scores.size != prior_odds.size + 1:
            raise InvalidInput(
                f"Expected {scores.size - 1} prior odds for {scores.size} models, got {prior_odds.size}"
            )
        if not log_scores and np.any(scores <= 0):
            raise InvalidInput(f"Model scores must be positive, got {scores.tolist()}")
        if np.any(prior_odds <= 0):
            raise InvalidInput(f"Prior odds must be positive, got {prior_odds.tolist()}")

        log_bayes_factors = scores if log_scores else np.log(scores)
        log_prior_odds = np.log(np.concatenate([[1.0], prior_odds]))
        log_posterior_odds = log_prior_odds + log_bayes_factors

        prior = np.exp(log_prior_odds - logsumexp(log_prior_odds))
        posterior = np.exp(log_posterior_odds - logsumexp(log_posterior_odds))

        return ModelProbabilities(prior=prior, posterior=posterior)

    @staticmethod
    def renormalize(probabilities: Sequence[float], keep: Sequence[int]) -> np.ndarray:
        """Restrict to the kept model indices and rescale to sum to 1"""
        probabilities = _as_vector(probabilities, "probabilities")
        kept = probabilities[np.asarray(keep, dtype=int)]
        mass = kept.sum()
        if kept.size == 0 or mass <= 0:
            raise InvalidInput("Cannot renormalize: remaining models carry no probability mass")
        return kept / mass


class SampleAllocator:
    """
    Per-model draw counts proportional to posterior probabilities

    Each count is rounded independently, half away from zero
    (floor(x + 0.5) for x >= 0). The total may drift from the budget by at
    most M * 0.5 and is not corrected.
    """

    @staticmethod
    def allocate(probabilities: Sequence[float], total: int) -> np.ndarray:
        probabilities = _as_vector(probabilities, "probabilities")

        if isinstance(total, bool) or not float(total).is_integer():
            raise InvalidInput(f"Total budget must be an integer, got {total}")
        total = int(total)
        if total < 0:
            raise InvalidInput(f"Total budget must be non-negative, got {total}")
        if np.any(probabilities < 0):
            raise InvalidInput(f"Probabilities must be non-negative, got {probabilities.tolist()}")
        if abs(probabilities.sum() - 1.0) > PROBABILITY_TOLERANCE:
            raise InvalidInput(f"Probabilities must sum to 1, got {probabilities.sum()}")

        allocation = np.floor(total * probabilities + 0.5).astype(int)
        # guards against probabilities a hair above 1
        return np.minimum(allocation, total)


class SampleBudgetPlanner:
    """
    Total draw budget for the pooled posterior

    The pooled sample cannot take more draws from a model than it holds
    after warm-up, so the most constrained model bounds the total.
    """

    @staticmethod
    def plan(
        algorithms: Optional[List[AlgorithmInfo]] = None,
        fixed_budget: Optional[int] = None
    ) -> int:
        if (algorithms is None) == (fixed_budget is None):
            raise InvalidInput("Provide exactly one of algorithms or fixed_budget")

        if fixed_budget is not None:
            if fixed_budget < 0:
                raise InvalidInput(f"Fixed budget must be non-negative, got {fixed_budget}")
            return int(fixed_budget)

        if len(algorithms) == 0:
            raise InvalidInput("No algorithm metadata to plan a budget from")

        totals = [algo.total_samples for algo in algorithms]
        for idx, n in enumerate(totals):
            if n <= 0:
                algo = algorithms[idx]
                raise InvalidInput(
                    f"Model #{idx} has no post-warm-up draws "
                    f"(chains={algo.chains}, iterations={algo.iterations}, warmup={algo.warmup})"
                )

        budget = int(min(totals))
        logger.debug(f"Per-model post-warm-up draws: {totals} -> budget {budget}")
        return budget
