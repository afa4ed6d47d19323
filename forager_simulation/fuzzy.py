from __future__ import annotations

import random
from dataclasses import dataclass

from .geometry import clamp01


@dataclass(frozen=True)
class FuzzyState:
    """Two-component description used to judge whether to trust a peer.

    internal_value: the agent's momentary confidence, resampled on every read
    external_value: distance to target normalised into [0, 1]
    """
    internal_value: float
    external_value: float


def sample_fuzzy_state(rng: random.Random, distance_to_target: float | None, scale: float = 20.0) -> FuzzyState:
    internal = rng.random()
    external = 1.0 if distance_to_target is None else clamp01(distance_to_target / scale)
    return FuzzyState(internal, external)


def fuzzy_similarity(a: FuzzyState, b: FuzzyState) -> float:
    diff_internal = abs(a.internal_value - b.internal_value)
    diff_external = abs(a.external_value - b.external_value)
    return clamp01(1.0 - (diff_internal + diff_external) / 2.0)
