"""Score aggregation: raw pass count and weighted compatibility score."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from screener.analysis.criteria import Criterion
from screener.config import DEFAULT_CRITERION_WEIGHTS
from screener.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_CRITERION_SCORE = 10.0


@dataclass(frozen=True)
class ScoreResult:
    """Scored analysis of one security. Superseded, never mutated.

    Attributes:
        security_id: Ticker symbol.
        raw_score: Number of passed criteria.
        weighted_score: Weighted compatibility score, 0-100.
        criteria: Criterion outcomes in catalogue order.
        computed_at: When the analysis ran (UTC).
        name: Company name.
        exchange: Exchange short name.
        sector: Business sector.
        currency: Reporting currency.
        price: Price used for valuation, None if unknown.
        intrinsic_value: Per-share intrinsic value estimate.
        margin_of_safety: Discount of price to intrinsic value, in percent.
    """

    security_id: str
    raw_score: int
    weighted_score: float
    criteria: tuple[Criterion, ...]
    computed_at: datetime
    name: str = ""
    exchange: str = ""
    sector: str = ""
    currency: str = ""
    price: float | None = None
    intrinsic_value: float | None = None
    margin_of_safety: float | None = None

    def criterion(self, name: str) -> Criterion | None:
        """Look up a criterion outcome by name."""
        for c in self.criteria:
            if c.name == name:
                return c
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            "security_id": self.security_id,
            "raw_score": self.raw_score,
            "weighted_score": self.weighted_score,
            "criteria": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "value": c.value,
                    "threshold": c.threshold,
                    "sub_aspects": list(c.sub_aspects) if c.sub_aspects else None,
                }
                for c in self.criteria
            ],
            "computed_at": self.computed_at.isoformat(),
            "name": self.name,
            "exchange": self.exchange,
            "sector": self.sector,
            "currency": self.currency,
            "price": self.price,
            "intrinsic_value": self.intrinsic_value,
            "margin_of_safety": self.margin_of_safety,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScoreResult:
        """Rebuild a ScoreResult from to_dict output."""
        criteria = tuple(
            Criterion(
                name=c["name"],
                passed=bool(c["passed"]),
                value=c["value"],
                threshold=c["threshold"],
                sub_aspects=tuple(c["sub_aspects"]) if c.get("sub_aspects") else None,  # type: ignore[arg-type]
            )
            for c in data["criteria"]
        )
        return cls(
            security_id=data["security_id"],
            raw_score=int(data["raw_score"]),
            weighted_score=float(data["weighted_score"]),
            criteria=criteria,
            computed_at=datetime.fromisoformat(data["computed_at"]),
            name=data.get("name", ""),
            exchange=data.get("exchange", ""),
            sector=data.get("sector", ""),
            currency=data.get("currency", ""),
            price=data.get("price"),
            intrinsic_value=data.get("intrinsic_value"),
            margin_of_safety=data.get("margin_of_safety"),
        )


def raw_score(criteria: Sequence[Criterion]) -> int:
    """Number of passed criteria."""
    return sum(1 for c in criteria if c.passed)


def criterion_score(criterion: Criterion) -> float:
    """Score one criterion on a 0-10 scale.

    10 if passed; fulfilled/total * 10 when only some sub-aspects were
    fulfilled; 0 otherwise.
    """
    if criterion.passed:
        return MAX_CRITERION_SCORE
    if criterion.sub_aspects is not None:
        fulfilled, total = criterion.sub_aspects
        return fulfilled / total * MAX_CRITERION_SCORE
    return 0.0


def weighted_score(
    criteria: Sequence[Criterion],
    weights: Mapping[str, float] | None = None,
) -> float:
    """Weighted compatibility score on a 0-100 scale.

    Sum over criteria of criterion_score / 10 * weight. With weights
    summing to 100, a security passing every criterion scores 100.

    Args:
        criteria: Criterion outcomes.
        weights: Criterion name -> weight (defaults to
            DEFAULT_CRITERION_WEIGHTS).

    Returns:
        Weighted score.

    Raises:
        ConfigurationError: If any criterion has no configured weight.
    """
    w = weights if weights is not None else DEFAULT_CRITERION_WEIGHTS

    unmatched = [c.name for c in criteria if c.name not in w]
    if unmatched:
        raise ConfigurationError(f"No weight configured for criteria: {unmatched}")

    return sum(
        criterion_score(c) / MAX_CRITERION_SCORE * w[c.name] for c in criteria
    )


def build_score_result(
    security_id: str,
    criteria: Sequence[Criterion],
    computed_at: datetime,
    weights: Mapping[str, float] | None = None,
    **details: Any,
) -> ScoreResult:
    """Aggregate criteria into a ScoreResult.

    Args:
        security_id: Ticker symbol.
        criteria: Criterion outcomes in catalogue order.
        computed_at: Analysis timestamp.
        weights: Criterion weights (defaults to DEFAULT_CRITERION_WEIGHTS).
        **details: Descriptive ScoreResult fields (name, exchange, sector,
            currency, price, intrinsic_value, margin_of_safety).

    Returns:
        ScoreResult.

    Raises:
        ConfigurationError: If a criterion has no configured weight.
    """
    result = ScoreResult(
        security_id=security_id,
        raw_score=raw_score(criteria),
        weighted_score=weighted_score(criteria, weights),
        criteria=tuple(criteria),
        computed_at=computed_at,
        **details,
    )
    logger.debug(
        "%s: raw score %d/%d, weighted %.1f",
        security_id, result.raw_score, len(criteria), result.weighted_score,
    )
    return result
