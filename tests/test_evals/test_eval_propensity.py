"""
Tests for the Visitor Propensity Evaluation
===========================================
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from evals.eval_propensity import roc_auc, calibration_table, evaluate_scores


class TestRocAuc:
    """Test ROC AUC."""

    def test_perfect_ranking(self):
        labels = np.array([0, 0, 1, 1])
        assert roc_auc(labels, np.array([0.1, 0.2, 0.8, 0.9])) == pytest.approx(1.0)

    def test_reversed_ranking(self):
        labels = np.array([0, 0, 1, 1])
        assert roc_auc(labels, np.array([0.9, 0.8, 0.2, 0.1])) == pytest.approx(0.0)

    def test_ties_count_half(self):
        labels = np.array([0, 1, 0, 1])
        assert roc_auc(labels, np.full(4, 0.5)) == pytest.approx(0.5)

    def test_boolean_labels(self):
        labels = np.array([False, True, True])
        assert roc_auc(labels, np.array([0.2, 0.3, 0.7])) == pytest.approx(1.0)

    def test_single_class(self):
        assert np.isnan(roc_auc(np.array([1, 1, 1]), np.array([0.2, 0.5, 0.9])))


class TestEvaluateScores:
    """Test score evaluation against the rollup."""

    def test_calibration_buckets(self):
        table = calibration_table(np.array([0, 1, 1]), np.array([0.05, 0.55, 1.0]))

        assert list(table['bucket_start']) == [0, 50, 90]
        assert table['visitors'].sum() == 3

    def test_informative_scores(self):
        rollup = pd.DataFrame({
            'visitor_id': ['a', 'b', 'c', 'd'],
            'event_count': [0, 0, 2, 5]
        })
        scores = pd.DataFrame({
            'visitor_id': ['a', 'b', 'c', 'd'],
            'probability': [0.1, 0.2, 0.7, 0.9],
            'propensity_score': [10, 20, 70, 90]
        })
        metrics = evaluate_scores(scores, rollup)

        assert metrics['auc'] == pytest.approx(1.0)
        assert metrics['unscored_visitors'] == 0
        assert metrics['scores_out_of_range'] == 0
