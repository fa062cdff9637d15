"""
Visitor Propensity Module
=========================
Visitor feature rollup and propensity scoring from raw clickstream hit data.

Stages:
1. Raw Event Loading - Read headerless hit files and project named columns
2. Feature Rollup - Per-visitor behavioral features, outer-joined and zero-filled
3. Propensity Model - Label, sample, fit a logistic GLM, score every visitor
4. Score Report - Bucket predicted probabilities and render a histogram
"""

from .errors import PropensityError, ModelFitError
from .stage1_raw_events import RawEventLoader, ColumnProjector
from .stage2_feature_rollup import FeatureAggregator, parse_event_count
from .stage3_propensity_model import PropensityModelBuilder, FittedPropensityModel
from .stage4_score_report import ScoreReporter, bucket_scores, render_histogram

__all__ = [
    'PropensityError',
    'ModelFitError',
    'RawEventLoader',
    'ColumnProjector',
    'FeatureAggregator',
    'parse_event_count',
    'PropensityModelBuilder',
    'FittedPropensityModel',
    'ScoreReporter',
    'bucket_scores',
    'render_histogram',
]
