"""
Lens review and certification.

Both operations are stateless transforms of their input. Scores come from a
ScoringStrategy; the only implementation shipped is PlaceholderScoring,
which produces random values in the published range until a real model is
plugged in. The response shape is the contract callers depend on.
"""

import random
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .errors import InvalidInput, MissingIdentifier
from .schema import ARCHETYPE_FIELD, LEGACY_ID_FIELD, utc_now_iso

METRIC_FIELDS = ("resonance", "emotional_depth", "symbolic_structure", "adaptive_intelligence", "final_rating")
BASE_TAGS = ["stabilizer", "clarity", "structure"]
SCORE_MIN = 6.0
SCORE_MAX = 8.0
CERTIFICATION_THRESHOLD = 6.0


class ScoringStrategy(ABC):
    """Produces review metrics for a record."""

    @abstractmethod
    def score(self, record: Dict[str, Any]) -> Dict[str, float]:
        """Return a value for every name in METRIC_FIELDS."""

    def tags(self, record: Dict[str, Any]) -> List[str]:
        return list(BASE_TAGS)


class PlaceholderScoring(ScoringStrategy):
    """
    PLACEHOLDER - random scores uniform in [6.0, 8.0], two decimals.

    Carries no information about the record. Replace with a real model.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def score(self, record: Dict[str, Any]) -> Dict[str, float]:
        return {name: round(self.rng.uniform(SCORE_MIN, SCORE_MAX), 2) for name in METRIC_FIELDS}

    def tags(self, record: Dict[str, Any]) -> List[str]:
        tags = list(BASE_TAGS)
        archetype = record.get(ARCHETYPE_FIELD)
        if isinstance(archetype, str) and archetype and archetype not in tags:
            tags.insert(0, archetype)
        return tags


_default_strategy: ScoringStrategy = PlaceholderScoring()


def get_default_strategy() -> ScoringStrategy:
    return _default_strategy


def set_default_strategy(strategy: ScoringStrategy) -> None:
    """Swap the process-wide scoring strategy."""
    global _default_strategy
    if not isinstance(strategy, ScoringStrategy):
        raise TypeError(f"Expected a ScoringStrategy, got {type(strategy).__name__}")
    _default_strategy = strategy


def review(record, record_id: Optional[str] = None, strategy: Optional[ScoringStrategy] = None) -> Dict[str, Any]:
    """Score a record. Raises InvalidInput when record is not an object."""
    if not isinstance(record, dict):
        raise InvalidInput("Review input must be a matrix object.")

    strategy = strategy or get_default_strategy()
    scores = strategy.score(record)
    missing = [name for name in METRIC_FIELDS if name not in scores]
    if missing:
        raise ValueError(f"Scoring strategy did not produce {missing}")

    result: Dict[str, Any] = {}
    identifier = record_id or _extract_id(record)
    if identifier:
        result["id"] = identifier
    for name in METRIC_FIELDS:
        result[name] = float(scores[name])
    result["symbolic_tags"] = strategy.tags(record)
    result["certified"] = result["final_rating"] >= CERTIFICATION_THRESHOLD
    return result


def certify(id_or_record) -> Dict[str, Any]:
    """
    Issue a certification for an identified record.

    Accepts an id string, a mapping carrying `id` (or legacy `matrixId`),
    or a mapping whose nested `record` carries one.
    """
    identifier = None
    if isinstance(id_or_record, str):
        identifier = id_or_record.strip() or None
    elif isinstance(id_or_record, dict):
        identifier = _extract_id(id_or_record)
        nested = id_or_record.get("record")
        if identifier is None and isinstance(nested, dict):
            identifier = _extract_id(nested)

    if not identifier:
        raise MissingIdentifier("matrix id is required to certify.")

    return {"id": identifier, "certified": True, "certified_at": utc_now_iso()}


def _extract_id(data: Dict[str, Any]) -> Optional[str]:
    for key in ("id", LEGACY_ID_FIELD):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
