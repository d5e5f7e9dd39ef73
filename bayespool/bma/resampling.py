"""
Posterior Resampling

Aligns heterogeneous draw tables on the union of their parameters and
pools a weighted random subset of each model's draws into one table.
"""

from typing import List, Optional, Sequence, Union
from dataclasses import dataclass, field
import numpy as np
import pandas as pd
import logging

from ..core.errors import InvalidInput, InsufficientDraws

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    """Parameter union and, per table, the union names it lacks"""
    union: List[str] = field(default_factory=list)
    missing: List[List[str]] = field(default_factory=list)


class ParameterSetReconciler:
    """Union of parameter names across models, in first-seen order"""

    @staticmethod
    def reconcile(tables: Sequence[pd.DataFrame]) -> Reconciliation:
        union: List[str] = []
        seen = set()
        for table in tables:
            for name in table.columns:
                if name not in seen:
                    seen.add(name)
                    union.append(name)

        missing = []
        for table in tables:
            present = set(table.columns)
            missing.append([name for name in union if name not in present])

        return Reconciliation(union=union, missing=missing)


class PosteriorResampler:
    """
    Pools per-model draws into a single posterior sample

    Each model contributes a uniform random subset of its rows (without
    replacement) of the allocated size. Parameters a model lacks are filled
    with the constant `missing`. All randomness comes from `rng`.
    """

    def __init__(
        self,
        rng: Union[np.random.Generator, int, None] = None,
        missing: float = 0.0
    ):
        self.rng = np.random.default_rng(rng)
        self.missing = missing

    def resample(
        self,
        tables: Sequence[pd.DataFrame],
        allocation: Sequence[int],
        union: Optional[List[str]] = None,
        model_names: Optional[List[str]] = None
    ) -> pd.DataFrame:
        allocation = np.asarray(allocation)
        if allocation.size != len(tables):
            raise InvalidInput(
                f"Got {allocation.size} allocations for {len(tables)} draw tables"
            )
        if np.any(allocation < 0):
            raise InvalidInput(f"Allocations must be non-negative, got {allocation.tolist()}")

        if union is None:
            union = ParameterSetReconciler.reconcile(tables).union

        # check every model before consuming any randomness
        for m, (table, n_draws) in enumerate(zip(tables, allocation)):
            if n_draws > len(table):
                name = model_names[m] if model_names is not None else None
                raise InsufficientDraws(m, int(n_draws), len(table), model_name=name)

        pooled = []
        for m, (table, n_draws) in enumerate(zip(tables, allocation)):
            pooled.append(self._resample_one(table, int(n_draws), union))
            logger.debug(f"  Model #{m}: kept {int(n_draws)}/{len(table)} draws")

        if not pooled:
            return pd.DataFrame(columns=union)

        return pd.concat(pooled, axis=0, ignore_index=True)

    def _resample_one(self, table: pd.DataFrame, n_draws: int, union: List[str]) -> pd.DataFrame:
        rows = self.rng.choice(len(table), size=n_draws, replace=False)
        resampled = table.iloc[rows].reset_index(drop=True)

        absent = [name for name in union if name not in resampled.columns]
        if absent:
            filler = pd.DataFrame(self.missing, index=resampled.index, columns=absent)
            resampled = pd.concat([resampled, filler], axis=1)

        return resampled[union]
