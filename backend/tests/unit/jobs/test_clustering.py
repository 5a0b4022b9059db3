"""
Unit tests for greedy keyword clustering.
"""

import numpy as np
import pytest

from app.jobs.clustering import KeywordCluster, cluster_keywords, cosine_similarity


class TestCosineSimilarity:
    def test_identical_vectors(self):
        a = np.array([0.3, 0.4])

        assert cosine_similarity(a, a) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 2.0])) == pytest.approx(0.0)

    def test_zero_vector_gives_zero(self):
        assert cosine_similarity(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0


class TestClusterKeywords:
    def test_similar_keywords_join_first_centre(self):
        keywords = ["seo audit", "site audit", "pizza recipe", "seo audit tool"]
        embeddings = np.array(
            [
                [1.0, 0.0],
                [0.9, 0.1],
                [0.0, 1.0],
                [0.95, 0.05],
            ]
        )

        clusters = cluster_keywords(keywords, embeddings, threshold=0.75)

        assert [c.center_keyword for c in clusters] == ["seo audit", "pizza recipe"]
        assert clusters[0].keywords == ["seo audit", "site audit", "seo audit tool"]
        assert clusters[1].keywords == ["pizza recipe"]

    def test_every_keyword_lands_in_exactly_one_cluster(self):
        rng = np.random.default_rng(7)
        keywords = [f"kw{i}" for i in range(12)]
        embeddings = rng.normal(size=(12, 8))

        clusters = cluster_keywords(keywords, embeddings, threshold=0.3)

        flattened = [k for c in clusters for k in c.keywords]
        assert sorted(flattened) == sorted(keywords)

    def test_threshold_of_one_keeps_distinct_vectors_apart(self):
        embeddings = np.array([[1.0, 0.0], [0.9, 0.1]])

        clusters = cluster_keywords(["a", "b"], embeddings, threshold=1.0)

        assert len(clusters) == 2

    def test_zero_vectors_form_singletons(self):
        embeddings = np.zeros((2, 4))

        clusters = cluster_keywords(["a", "b"], embeddings)

        assert [c.keywords for c in clusters] == [["a"], ["b"]]

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            cluster_keywords(["a", "b"], np.ones((3, 2)))

    def test_as_dict_labels_by_centre(self):
        cluster = KeywordCluster(center_keyword="seo audit", keywords=["seo audit", "site audit"])

        assert cluster.as_dict(0) == {
            "name": "Cluster 1",
            "label": "seo audit",
            "keywords": ["seo audit", "site audit"],
            "centerKeyword": "seo audit",
        }
