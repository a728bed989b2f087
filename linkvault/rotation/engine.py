"""Weighted link rotation with geographic and device targeting.

Selection is the same for every strategy: draw r in [0, 1), walk the
candidates accumulating weight, and return the first whose cumulative
weight reaches r. Strategies only decide how the weights are computed.
"""

from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from linkvault.config import settings
from linkvault import metrics

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 1e-9

_TABLET_RE = re.compile(r"ipad|tablet|kindle|silk|playbook|android(?!.*mobile)", re.IGNORECASE)
_MOBILE_RE = re.compile(r"mobi|iphone|ipod|windows phone|blackberry|opera mini", re.IGNORECASE)


class RotationConfigError(ValueError):
    """Raised for unusable rotation input (no candidates, missing weights, bad values)."""


class RotationStrategy(str, Enum):
    ROUND_ROBIN = "round_robin"
    WEIGHTED = "weighted"
    PERFORMANCE_BASED = "performance_based"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: "RotationStrategy | str") -> "RotationStrategy":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise RotationConfigError(f"Unknown strategy {value!r}. Expected one of: {allowed}")


@dataclass
class VisitorContext:
    """What is known about the visitor at serve time."""

    country: Optional[str] = None
    device: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None

    def resolved_country(self) -> Optional[str]:
        return self.country.strip().upper() if self.country else None

    def resolved_device(self) -> Optional[str]:
        """Explicit device, else mobile/tablet/desktop derived from the user agent."""
        if self.device:
            return self.device.strip().lower()
        if self.user_agent:
            return detect_device(self.user_agent)
        return None


def detect_device(user_agent: str) -> str:
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


@dataclass
class RotationConfig:
    """Rotation settings for one product."""

    product_id: str
    strategy: RotationStrategy = RotationStrategy.WEIGHTED
    weights: dict[str, float] = field(default_factory=dict)
    test_duration_days: int = 30
    traffic_split: float = 1.0
    geo_targeting: dict[str, list[str]] = field(default_factory=dict)
    device_targeting: dict[str, list[str]] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    version: int = 0  # 0 until persisted

    def __post_init__(self):
        self.strategy = RotationStrategy.parse(self.strategy)
        if not 1 <= self.test_duration_days <= 365:
            raise RotationConfigError("test_duration_days must be between 1 and 365")
        if not 0.1 <= self.traffic_split <= 1.0:
            raise RotationConfigError("traffic_split must be between 0.1 and 1.0")
        for link_id, weight in self.weights.items():
            if not 0.0 <= weight <= 1.0 or math.isnan(weight):
                raise RotationConfigError(f"Weight for {link_id} must be between 0 and 1")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        return now >= self.expires_at


def _link_id(link: Any) -> str:
    return str(link.id)


def _conversions(link: Any) -> int:
    analytics = getattr(link, "analytics", None)
    if analytics is None:
        return 0
    return int(getattr(analytics, "total_conversions", 0) or 0)


def equal_weights(candidates: Sequence[Any]) -> dict[str, float]:
    if not candidates:
        return {}
    weight = 1.0 / len(candidates)
    return {_link_id(link): weight for link in candidates}


def normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Scale weights to sum to 1. An all-zero map comes back unchanged."""
    total = sum(weights.values())
    if total <= 0:
        return dict(weights)
    return {link_id: weight / total for link_id, weight in weights.items()}


def compute_weights(
    candidates: Sequence[Any],
    strategy: RotationStrategy | str,
    weights: Optional[Mapping[str, float]] = None,
    conversions: Optional[Mapping[str, int]] = None,
    rng: Optional[random.Random] = None,
) -> dict[str, float]:
    """
    Compute per-link weights for a strategy.

    Args:
        candidates: Links with an .id (and optionally .analytics.total_conversions)
        strategy: Rotation strategy
        weights: Caller-supplied map, required for weighted
        conversions: Conversion counts by link id; read from link analytics if omitted
        rng: Random source for the random strategy

    Raises:
        RotationConfigError: weighted strategy without weights
    """
    strategy = RotationStrategy.parse(strategy)

    if strategy is RotationStrategy.WEIGHTED:
        if not weights:
            raise RotationConfigError("Weights are required for weighted strategy")
        return {_link_id(link): float(weights.get(_link_id(link), 0.0)) for link in candidates}

    if strategy is RotationStrategy.PERFORMANCE_BASED:
        counts = {
            _link_id(link): (
                int(conversions.get(_link_id(link), 0)) if conversions is not None else _conversions(link)
            )
            for link in candidates
        }
        total = sum(counts.values())
        if total == 0:
            return equal_weights(candidates)
        return {link_id: count / total for link_id, count in counts.items()}

    if strategy is RotationStrategy.RANDOM:
        rng = rng or random
        raw = {_link_id(link): rng.random() for link in candidates}
        if sum(raw.values()) <= 0:
            return equal_weights(candidates)
        return normalize_weights(raw)

    # round_robin is an equal-weight random draw, not sequential cycling
    return equal_weights(candidates)


def _draw(candidates: Sequence[Any], weights: Mapping[str, float], rng) -> Any:
    r = rng.random()
    cumulative = 0.0
    for link in candidates:
        cumulative += weights.get(_link_id(link), 0.0)
        if cumulative >= r:
            return link
    # Only reachable when weights sum below r through rounding or bad input
    return candidates[0]


def _apply_filter(
    candidates: list[Any],
    targeting: Mapping[str, Sequence[str]],
    value: str,
    normalize,
    label: str,
) -> list[Any]:
    filtered = []
    for link in candidates:
        allowed = targeting.get(_link_id(link))
        # No entry means untargeted; an empty list allows nothing
        if allowed is None or value in {normalize(v) for v in allowed}:
            filtered.append(link)
    if not filtered:
        logger.debug(f"{label} targeting would drop every candidate for {value!r}; skipping filter")
        return candidates
    return filtered


def filter_by_targeting(
    candidates: Sequence[Any],
    visitor: Optional[VisitorContext],
    config: Optional[RotationConfig],
) -> list[Any]:
    """
    Drop candidates whose country/device allow-list excludes the visitor.

    Links without a targeting entry stay eligible; an empty entry allows
    nothing. A filter that would remove every candidate is skipped.
    """
    eligible = list(candidates)
    if visitor is None or config is None:
        return eligible

    country = visitor.resolved_country()
    if config.geo_targeting and country:
        eligible = _apply_filter(
            eligible, config.geo_targeting, country, lambda v: v.strip().upper(), "Geo"
        )

    device = visitor.resolved_device()
    if config.device_targeting and device:
        eligible = _apply_filter(
            eligible, config.device_targeting, device, lambda v: v.strip().lower(), "Device"
        )

    return eligible


class RotationEngine:
    """
    Stateless selector bound to one product's rotation config.

    Build one per use; instances hold no state beyond config and rng.
    """

    def __init__(
        self,
        config: Optional[RotationConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.rng = rng or random.Random()

    def weights_for(self, candidates: Sequence[Any]) -> dict[str, float]:
        """Weights for candidates under the configured strategy."""
        if self.config is None:
            return equal_weights(candidates)

        strategy = self.config.strategy
        stored = self.config.weights
        # weighted and random keep the weights fixed at setup time;
        # performance_based reads live conversions on every call
        if strategy is RotationStrategy.WEIGHTED or (strategy is RotationStrategy.RANDOM and stored):
            weights = compute_weights(candidates, RotationStrategy.WEIGHTED, stored)
            if {_link_id(link) for link in candidates} != set(stored):
                # Candidate set was narrowed by targeting or inactive links
                weights = normalize_weights(weights)
                if sum(weights.values()) <= 0:
                    weights = equal_weights(candidates)
            return weights

        return compute_weights(candidates, strategy, rng=self.rng)

    def select(
        self,
        candidates: Sequence[Any],
        weights: Optional[Mapping[str, float]] = None,
    ) -> Any:
        """
        Pick one link by cumulative weight.

        Raises:
            RotationConfigError: no candidates
        """
        if not candidates:
            raise RotationConfigError("No affiliate links available")
        if len(candidates) == 1:
            return candidates[0]

        if weights is None:
            weights = self.weights_for(candidates)
        chosen = _draw(candidates, weights, self.rng)

        strategy = self.config.strategy.value if self.config else "weighted"
        metrics.record_rotation(strategy)
        return chosen

    def select_with_targeting(
        self,
        candidates: Sequence[Any],
        visitor: Optional[VisitorContext] = None,
    ) -> Any:
        """
        Filter by targeting, then select among eligible links.

        Without a config the first eligible link is returned. With
        traffic_split below 1, visitors outside the test share get the
        first eligible link (the control).
        """
        if not candidates:
            raise RotationConfigError("No affiliate links available")
        if len(candidates) == 1:
            return candidates[0]

        eligible = filter_by_targeting(candidates, visitor, self.config)
        if self.config is None or len(eligible) == 1:
            return eligible[0]

        if self.config.traffic_split < 1.0 and self.rng.random() >= self.config.traffic_split:
            return eligible[0]

        return self.select(eligible)


def select_link_for_rotation(
    candidates: Sequence[Any],
    weights: Optional[Mapping[str, float]] = None,
    strategy: RotationStrategy | str = RotationStrategy.WEIGHTED,
    rng: Optional[random.Random] = None,
) -> Any:
    """
    Choose one link from candidates.

    Supplied weights are used as-is; otherwise they are computed from
    strategy. A single candidate is returned without drawing.
    """
    if not candidates:
        raise RotationConfigError("No affiliate links available")
    if len(candidates) == 1:
        return candidates[0]

    strategy = RotationStrategy.parse(strategy)
    engine = RotationEngine(rng=rng)
    if not weights:
        weights = compute_weights(candidates, strategy, rng=engine.rng)
    chosen = _draw(candidates, weights, engine.rng)
    metrics.record_rotation(strategy.value)
    return chosen


def select_link_with_targeting(
    candidates: Sequence[Any],
    visitor: Optional[VisitorContext] = None,
    rotation_config: Optional[RotationConfig] = None,
    rng: Optional[random.Random] = None,
) -> Any:
    """Apply geo/device targeting, then rotate among eligible links."""
    return RotationEngine(rotation_config, rng).select_with_targeting(candidates, visitor)


def setup_link_rotation(
    product_id: str,
    candidates: Sequence[Any],
    strategy: RotationStrategy | str,
    weights: Optional[Mapping[str, float]] = None,
    test_duration_days: Optional[int] = None,
    traffic_split: Optional[float] = None,
    geo_targeting: Optional[Mapping[str, Sequence[str]]] = None,
    device_targeting: Optional[Mapping[str, Sequence[str]]] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> RotationConfig:
    """
    Build a rotation config with computed, normalized weights.

    Raises:
        RotationConfigError: fewer than 2 candidates, weighted without
            weights, weights matching no candidate, or out-of-range values
    """
    if len(candidates) < 2:
        raise RotationConfigError("At least 2 affiliate links are required for rotation")

    strategy = RotationStrategy.parse(strategy)
    if weights:
        for link_id, weight in weights.items():
            if not 0.0 <= weight <= 1.0:
                raise RotationConfigError(f"Weight for {link_id} must be between 0 and 1")

    computed = compute_weights(candidates, strategy, weights, rng=rng)
    if strategy is RotationStrategy.WEIGHTED:
        if sum(computed.values()) <= 0:
            raise RotationConfigError("Weights do not match any active link for this product")
        computed = normalize_weights(computed)

    duration = test_duration_days or settings.rotation_default_test_duration_days
    created_at = now or datetime.now(timezone.utc).replace(tzinfo=None)

    config = RotationConfig(
        product_id=product_id,
        strategy=strategy,
        weights=computed,
        test_duration_days=duration,
        traffic_split=traffic_split if traffic_split is not None else settings.rotation_default_traffic_split,
        geo_targeting={k: list(v) for k, v in (geo_targeting or {}).items()},
        device_targeting={k: list(v) for k, v in (device_targeting or {}).items()},
        created_at=created_at,
        expires_at=created_at + timedelta(days=duration),
    )
    logger.info(
        f"Configured {strategy.value} rotation for product {product_id} "
        f"across {len(candidates)} links"
    )
    return config
