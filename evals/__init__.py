"""
Evaluation Scripts
==================
Quality evaluation and metrics for both pipelines.
"""

from .eval_propensity import run_evaluation as run_propensity_eval
from .eval_search_queries import run_evaluation as run_search_queries_eval

__all__ = [
    'run_propensity_eval',
    'run_search_queries_eval',
]
