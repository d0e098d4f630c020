# faceaccess/recognition/matcher.py
"""
Identity matching by Euclidean (L2) distance.

For each identity the distance is the minimum over its stored embeddings;
the match is the identity with the global minimum. Identities are visited in
case-folded name order so ties resolve the same way whatever the store's
insertion order.
"""
import math
import logging
from typing import Dict, Optional, Sequence

import numpy as np

from ..core.errors import DimensionMismatch
from ..core.types import MatchResult

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_THRESHOLD = 1.9
DEFAULT_DUPLICATE_THRESHOLD = 0.92


def euclidean_distance(a, b) -> float:
    """L2 distance. Embeddings of different length are an error."""
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.size != b.size:
        raise DimensionMismatch(a.size, b.size)
    return float(np.linalg.norm(a - b))


def min_distance(embedding, embeddings: Sequence) -> float:
    """Smallest distance from embedding to any of embeddings (inf if empty)."""
    best = math.inf
    for stored in embeddings:
        best = min(best, euclidean_distance(embedding, stored))
    return best


def nearest_identity(embedding, identities: Dict[str, Sequence]) -> MatchResult:
    """Nearest identity regardless of threshold. (None, inf) when empty."""
    best_name = None
    best_dist = math.inf

    for name in sorted(identities, key=lambda n: (n.casefold(), n)):
        dist = min_distance(embedding, identities[name])
        logger.debug(f"[Matcher] distance to {name}: {dist:.4f}")
        if dist < best_dist:
            best_dist = dist
            best_name = name

    return MatchResult(name=best_name, distance=best_dist)


def identify(embedding, identities: Dict[str, Sequence],
             threshold: float = DEFAULT_VERIFICATION_THRESHOLD) -> MatchResult:
    """
    Identify the owner of an embedding.

    Args:
        embedding: Query embedding
        identities: {name: [embedding, ...]}
        threshold: Match if min distance < threshold

    Returns:
        MatchResult(name or None, min distance)
    """
    nearest = nearest_identity(embedding, identities)
    if nearest.name is not None and nearest.distance < threshold:
        logger.debug(f"[Matcher] match {nearest.name} ({nearest.distance:.4f})")
        return nearest
    return MatchResult(name=None, distance=nearest.distance)


def find_duplicate(embedding, identities: Dict[str, Sequence],
                   threshold: float = DEFAULT_DUPLICATE_THRESHOLD) -> Optional[MatchResult]:
    """
    Enrollment duplicate check.

    Returns:
        The nearest identity if its min distance is < threshold, else None
    """
    nearest = nearest_identity(embedding, identities)
    if nearest.name is not None and nearest.distance < threshold:
        return nearest
    return None
