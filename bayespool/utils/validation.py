"""
Validation Utilities for bayespool

Provides tools for checking a pooled posterior against the guarantees of
the weighting and resampling steps.
"""

from typing import Dict, List, Any
import numpy as np
import logging

logger = logging.getLogger(__name__)


class PooledPosteriorValidator:
    """
    Validation suite for pooled posterior draws

    Checks:
    1. Model probabilities are a distribution
    2. Allocation is within budget
    3. Row count and column alignment of the pooled table
    4. Missing-parameter fill per model block
    """

    def __init__(self, tolerance: float = 1e-9):
        """
        Args:
            tolerance: Absolute tolerance for probabilities summing to 1
        """
        self.tolerance = tolerance

    def validate(self, results: Any) -> Dict[str, Any]:
        """
        Run all checks on a WeightedPosteriorResults

        Returns:
            Dict with validation results for each check
        """
        checks = {
            'probabilities': self._validate_probabilities(results.posterior_probabilities),
            'allocation': self._validate_allocation(results.allocation, results.total_budget),
            'shape': self._validate_shape(results),
            'missing_fill': self._validate_missing_fill(results),
        }

        checks['overall_pass'] = all(check['passed'] for check in checks.values())

        if not checks['overall_pass']:
            failed = [name for name, check in checks.items() if name != 'overall_pass' and not check['passed']]
            logger.warning(f"Pooled posterior failed checks: {failed}")

        return checks

    def _validate_probabilities(self, probabilities) -> Dict[str, Any]:
        p = np.asarray(probabilities, dtype=float)
        total = float(p.sum())
        return {
            'sum': total,
            'non_negative': bool(np.all(p >= 0)),
            'passed': bool(np.all(p >= 0)) and abs(total - 1.0) <= self.tolerance,
        }

    def _validate_allocation(self, allocation, budget: int) -> Dict[str, Any]:
        a = np.asarray(allocation)
        within_budget = bool(np.all((a >= 0) & (a <= budget)))
        integral = bool(np.issubdtype(a.dtype, np.integer))
        return {
            'total': int(a.sum()),
            'budget': int(budget),
            'drift': int(a.sum()) - int(budget),
            'passed': within_budget and integral,
        }

    def _validate_shape(self, results: Any) -> Dict[str, Any]:
        draws = results.posterior_draws
        expected_rows = int(np.sum(results.allocation))

        union: List[str] = []
        for name in results.model_names:
            for param in results.model_parameters.get(name, []):
                if param not in union:
                    union.append(param)

        columns = list(draws.columns)
        return {
            'n_rows': len(draws),
            'expected_rows': expected_rows,
            'columns_match_union': columns == union,
            'passed': len(draws) == expected_rows and columns == union,
        }

    def _validate_missing_fill(self, results: Any) -> Dict[str, Any]:
        """Every row from a model must carry `missing` in the parameters it lacks"""
        draws = results.posterior_draws
        errors = []

        start = 0
        for name, n_draws in zip(results.model_names, results.allocation):
            block = draws.iloc[start:start + int(n_draws)]
            start += int(n_draws)

            estimated = set(results.model_parameters.get(name, []))
            for param in draws.columns:
                if param in estimated or block.empty:
                    continue
                values = block[param].to_numpy(dtype=float)
                if np.isnan(results.missing):
                    filled = np.isnan(values)
                else:
                    filled = values == results.missing
                if not np.all(filled):
                    errors.append({'model': name, 'parameter': param})

        return {
            'errors': errors,
            'passed': len(errors) == 0,
        }

    def generate_validation_report(self, checks: Dict[str, Any]) -> str:
        """Generate human-readable validation report"""
        report = []

        report.append("=" * 80)
        report.append("POOLED POSTERIOR VALIDATION REPORT")
        report.append("=" * 80)

        if 'probabilities' in checks:
            prob = checks['probabilities']
            report.append(f"\nModel probabilities sum: {prob['sum']:.12f}")
            report.append(f" Valid distribution: {'YES' if prob['passed'] else 'NO'}")

        if 'allocation' in checks:
            alloc = checks['allocation']
            report.append(f"\nAllocated draws: {alloc['total']} of budget {alloc['budget']} (drift {alloc['drift']:+d})")
            report.append(f" Within budget: {'YES' if alloc['passed'] else 'NO'}")

        if 'shape' in checks:
            shape = checks['shape']
            report.append(f"\nPooled rows: {shape['n_rows']} (expected {shape['expected_rows']})")
            report.append(f" Columns aligned: {'YES' if shape['columns_match_union'] else 'NO'}")

        if 'missing_fill' in checks:
            fill = checks['missing_fill']
            report.append(f"\nMissing-parameter fill errors: {len(fill['errors'])}")

        overall = checks.get('overall_pass', False)
        report.append(f"\n{'=' * 80}")
        report.append(f"OVERALL: {'PASS' if overall else 'FAIL'}")
        report.append(f"{'=' * 80}")

        return "\n".join(report)
