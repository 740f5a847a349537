"""
Heuristic embedding projector and the process-wide embedding space.

This is not a trained embedding. Text is bucketed into five themes by keyword
hits, each theme pulls the point along a fixed direction, and a little jitter
keeps overlapping points apart in the browser's 3-D view. Concepts (repeated
words) drive clustering and a novelty score that decays as a concept recurs.
"""

import asyncio
import random
import re
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .types import ConceptCluster, EmbeddingPoint
from .utils import clamp

MAX_TOKENS = 100
MAX_CONCEPTS = 10
CLUSTER_KEY_LENGTH = 20
JITTER = 0.25

THEMES: Dict[str, Tuple[Tuple[float, float, float], Tuple[str, ...]]] = {
    "technical": ((1.0, 0.0, 0.0), ("technolog", "algorithm", "system", "software", "implement", "comput", "data", "network")),
    "scientific": ((0.0, 1.0, 0.0), ("research", "scien", "study", "experiment", "theory", "physics", "quantum", "evidence")),
    "social": ((0.0, 0.0, 1.0), ("social", "society", "people", "communit", "cultur", "educat", "health", "ethic")),
    "economic": ((-1.0, 0.5, 0.0), ("econom", "market", "cost", "business", "invest", "industr", "financ", "growth")),
    "environmental": ((0.0, -1.0, 0.5), ("climate", "environment", "energy", "sustainab", "carbon", "emission", "green", "ecosystem")),
}

SIGNIFICANCE_KEYWORDS = (
    "breakthrough", "significant", "critical", "major", "important",
    "revolutionary", "innovative", "novel", "essential", "transformative",
)

_WORD_SPLIT = re.compile(r"\W+")


def tokenize(text: str) -> List[str]:
    return [t for t in _WORD_SPLIT.split((text or "").lower()) if t]


def extract_concepts(text: str, limit: int = MAX_CONCEPTS) -> Tuple[str, ...]:
    """Words longer than 3 chars that occur more than once, most frequent first."""
    counts = Counter(t for t in tokenize(text) if len(t) > 3)
    repeated = [(word, n) for word, n in counts.items() if n > 1]
    # Counter preserves first-seen order, so sorted() keeps ties stable.
    repeated.sort(key=lambda item: item[1], reverse=True)
    return tuple(word for word, _ in repeated[:limit])


def cluster_key(concepts: Tuple[str, ...]) -> Optional[str]:
    if not concepts:
        return None
    return "-".join(sorted(concepts))[:CLUSTER_KEY_LENGTH]


def importance_score(text: str) -> float:
    tokens = tokenize(text)
    hits = sum(1 for t in tokens if t in SIGNIFICANCE_KEYWORDS)
    return min(1.0, 0.5 + 0.1 * hits)


class EmbeddingProjector:
    """Maps free text to a 3-D point. Pure apart from the jitter source."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def coordinates(self, content: str) -> Tuple[float, float, float, float]:
        """Return (x, y, z, weight) for the first MAX_TOKENS tokens of `content`."""
        tokens = tokenize(content)[:MAX_TOKENS]
        x = y = z = 0.0
        total_weight = 0
        for direction, keywords in THEMES.values():
            hits = sum(1 for token in tokens for keyword in keywords if keyword in token)
            if hits:
                x += direction[0] * hits
                y += direction[1] * hits
                z += direction[2] * hits
                total_weight += hits

        divisor = max(total_weight, 1)
        x = x / divisor + self.rng.uniform(-JITTER, JITTER)
        y = y / divisor + self.rng.uniform(-JITTER, JITTER)
        z = z / divisor + self.rng.uniform(-JITTER, JITTER)
        return x, y, z, min(total_weight / 10, 1.0)

    def project(
        self,
        query: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        novelty: float = 1.0,
    ) -> EmbeddingPoint:
        x, y, z, weight = self.coordinates(content)
        concepts = extract_concepts(content)
        return EmbeddingPoint(
            id=f"emb-{uuid.uuid4().hex[:12]}",
            x=x,
            y=y,
            z=z,
            concepts=concepts,
            cluster=cluster_key(concepts),
            novelty=novelty,
            importance=importance_score(content),
            weight=weight,
            metadata={
                "query": query,
                "timestamp": datetime.now().isoformat(),
                **(metadata or {}),
            },
        )


class EmbeddingSpace:
    """
    Append-only id -> EmbeddingPoint map plus lazily created concept clusters.

    Inserts run under an asyncio.Lock so novelty is computed against a stable
    space. Snapshots and clear never await, which makes them atomic on the
    event loop.
    """

    def __init__(self, projector: Optional[EmbeddingProjector] = None):
        self.projector = projector or EmbeddingProjector()
        self._points: Dict[str, EmbeddingPoint] = {}
        self._clusters: Dict[str, ConceptCluster] = {}
        self._concept_counts: Counter = Counter()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._points)

    def concept_occurrences(self, concept: str) -> int:
        """Number of points in the space whose concept set contains `concept`."""
        return self._concept_counts[concept]

    def novelty_for(self, concepts: Tuple[str, ...]) -> float:
        novelty = 1.0
        for concept in concepts:
            novelty *= max(0.1, 1 - 0.1 * self.concept_occurrences(concept))
        return clamp(novelty)

    async def ingest(self, query: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> EmbeddingPoint:
        """Project `content`, score it against the current space, and insert it."""
        async with self._lock:
            concepts = extract_concepts(content)
            point = self.projector.project(query, content, metadata, novelty=self.novelty_for(concepts))
            self._insert(point)
            return point

    def _insert(self, point: EmbeddingPoint) -> None:
        self._points[point.id] = point
        self._concept_counts.update(set(point.concepts))
        if point.cluster is not None:
            cluster = self._clusters.get(point.cluster)
            if cluster is None:
                cluster = ConceptCluster(key=point.cluster)
                self._clusters[point.cluster] = cluster
            cluster.members.append(point)

    def snapshot(self) -> List[EmbeddingPoint]:
        return list(self._points.values())

    def clusters(self) -> List[ConceptCluster]:
        return [
            ConceptCluster(key=c.key, members=list(c.members), created_at=c.created_at)
            for c in self._clusters.values()
        ]

    def get_cluster(self, key: str) -> Optional[ConceptCluster]:
        cluster = self._clusters.get(key)
        if cluster is None:
            return None
        return ConceptCluster(key=cluster.key, members=list(cluster.members), created_at=cluster.created_at)

    def clear(self) -> None:
        self._points = {}
        self._clusters = {}
        self._concept_counts = Counter()
