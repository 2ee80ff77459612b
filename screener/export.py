"""CSV export of score results."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from screener.analysis.criteria import CRITERIA_ORDER
from screener.analysis.scoring import ScoreResult

logger = logging.getLogger(__name__)

COLUMNS: list[str] = [
    "symbol",
    "name",
    "exchange",
    "sector",
    "currency",
    "price",
    "raw_score",
    "weighted_score",
    *[
        col
        for name in CRITERIA_ORDER
        for col in (f"{name}_value", f"{name}_pass")
    ],
    "intrinsic_value",
    "margin_of_safety",
    "computed_at",
]


def _row(result: ScoreResult) -> dict[str, object]:
    row: dict[str, object] = {
        "symbol": result.security_id,
        "name": result.name,
        "exchange": result.exchange,
        "sector": result.sector,
        "currency": result.currency,
        "price": result.price,
        "raw_score": result.raw_score,
        "weighted_score": round(result.weighted_score, 2),
        "intrinsic_value": result.intrinsic_value,
        "margin_of_safety": result.margin_of_safety,
        "computed_at": result.computed_at.isoformat(),
    }
    for name in CRITERIA_ORDER:
        criterion = result.criterion(name)
        row[f"{name}_value"] = criterion.value if criterion is not None else None
        row[f"{name}_pass"] = criterion.passed if criterion is not None else False
    return row


def results_frame(results: Sequence[ScoreResult]) -> pd.DataFrame:
    """One row per result, columns in COLUMNS order."""
    return pd.DataFrame([_row(r) for r in results], columns=COLUMNS)


def export_csv(results: Sequence[ScoreResult], path: Path) -> None:
    """Write results to CSV, creating parent directories.

    Args:
        results: Results in the desired row order.
        path: Output CSV path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    results_frame(results).to_csv(path, index=False)
    logger.info("Exported %d results to %s", len(results), path)
