"""
Greedy keyword clustering over embedding vectors.

Keywords are visited in input order; the first unassigned keyword opens a
cluster and becomes its centre, and every later unassigned keyword whose
cosine similarity to the centre is at least the threshold joins it.
"""

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from numpy.linalg import norm


@dataclass
class KeywordCluster:
    center_keyword: str
    keywords: list[str] = field(default_factory=list)

    def as_dict(self, index: int) -> dict:
        return {
            "name": f"Cluster {index + 1}",
            "label": self.center_keyword,
            "keywords": self.keywords,
            "centerKeyword": self.center_keyword,
        }


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity in [-1, 1]; 0.0 when either vector is all zeros.
    """
    norm_a = norm(a)
    norm_b = norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def cluster_keywords(
    keywords: Sequence[str],
    embeddings: np.ndarray,
    threshold: float = 0.75,
) -> list[KeywordCluster]:
    """
    Group keywords by similarity to a cluster centre.

    Args:
        keywords: Keywords in input order
        embeddings: Array of shape (len(keywords), dim)
        threshold: Minimum cosine similarity to join a cluster

    Returns:
        Clusters in order of their centre keyword
    """
    if len(keywords) != len(embeddings):
        raise ValueError("keywords and embeddings must have the same length")

    assigned: set[int] = set()
    clusters: list[KeywordCluster] = []
    for i, keyword in enumerate(keywords):
        if i in assigned:
            continue
        assigned.add(i)
        cluster = KeywordCluster(center_keyword=keyword, keywords=[keyword])
        for j in range(i + 1, len(keywords)):
            if j in assigned:
                continue
            if cosine_similarity(embeddings[i], embeddings[j]) >= threshold:
                cluster.keywords.append(keywords[j])
                assigned.add(j)
        clusters.append(cluster)
    return clusters
