"""
Baseline estimation for campaign KPI history.

A baseline summarises the "normal" range of a metric over a historical window.
Baselines are recomputed on every evaluation and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .schema import Baseline
from .statistics import mean, percentile, std_dev


@dataclass(frozen=True)
class BaselineCalculator:
    """
    Computes Baseline statistics from a chronological value series.

    Degenerate input (empty series) yields an all-zero Baseline with
    sample_size 0; callers must check sample_size before trusting z-score or
    IQR results.
    """

    def calculate(self, values: Sequence[float]) -> Baseline:
        if not values:
            return Baseline()

        ordered = sorted(float(v) for v in values)
        avg = mean(ordered)
        q1 = percentile(ordered, 25)
        q3 = percentile(ordered, 75)

        return Baseline(
            mean=avg,
            std_dev=std_dev(ordered, avg),
            median=percentile(ordered, 50),
            min=ordered[0],
            max=ordered[-1],
            q1=q1,
            q3=q3,
            iqr=q3 - q1,
            percentile95=percentile(ordered, 95),
            sample_size=len(ordered),
        )


def calculate_baseline(values: Sequence[float]) -> Baseline:
    """Convenience wrapper around BaselineCalculator."""
    return BaselineCalculator().calculate(values)
