"""
Evaluation Script: Visitor Propensity Pipeline
==============================================
Evaluates the rollup and the propensity scores written by
src.visitor_propensity.run_pipeline.

Metrics:
- Rollup completeness (one row per visitor, no missing features)
- Score validity and coverage (every visitor scored, scores in 0-100)
- Discrimination (ROC AUC)
- Calibration by score bucket (mean predicted vs observed response rate)
"""

import pandas as pd
import numpy as np
from pathlib import Path
import json
from typing import Dict, Any

from sklearn.metrics import roc_auc_score


def evaluate_rollup(rollup_df: pd.DataFrame) -> Dict[str, Any]:
    """
    Evaluate visitor rollup quality.

    Returns metrics on coverage and feature validity.
    """
    metrics = {}
    features = [c for c in rollup_df.columns if c != 'visitor_id']

    metrics['total_visitors'] = len(rollup_df)
    metrics['duplicate_visitors'] = int(rollup_df['visitor_id'].duplicated().sum())
    metrics['missing_values'] = int(rollup_df[features].isna().sum().sum())
    metrics['negative_values'] = int((rollup_df[features] < 0).sum().sum())

    if 'hit_count' in rollup_df.columns:
        metrics['single_hit_share'] = float((rollup_df['hit_count'] <= 1).mean())
        metrics['hits_mean'] = float(rollup_df['hit_count'].mean())
    if 'visits' in rollup_df.columns and 'lifetime_visits' in rollup_df.columns:
        # Distinct visits observed can never exceed the highest visit number
        metrics['visits_above_lifetime'] = int(
            (rollup_df['visits'] > rollup_df['lifetime_visits']).sum()
        )

    quality_score = 100
    if metrics['duplicate_visitors'] > 0:
        quality_score -= 30
    if metrics['missing_values'] > 0:
        quality_score -= 30
    if metrics['negative_values'] > 0:
        quality_score -= 20
    if metrics.get('visits_above_lifetime', 0) > 0:
        quality_score -= 20

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def roc_auc(labels: np.ndarray, probabilities: np.ndarray) -> float:
    """ROC AUC of probabilities against binary labels. NaN when one class is absent."""
    labels = np.asarray(labels).astype(int)
    if len(np.unique(labels)) < 2:
        return float('nan')

    return float(roc_auc_score(labels, probabilities))


def calibration_table(
    labels: np.ndarray,
    probabilities: np.ndarray,
    bucket_width: int = 10
) -> pd.DataFrame:
    """Mean predicted probability and observed rate per score bucket."""
    scores = np.rint(np.asarray(probabilities) * 100).astype(int)
    n_buckets = 100 // bucket_width
    bucket = np.minimum(scores // bucket_width, n_buckets - 1)

    df = pd.DataFrame({
        'bucket_start': bucket * bucket_width,
        'predicted': probabilities,
        'observed': np.asarray(labels).astype(float)
    })
    return df.groupby('bucket_start').agg(
        visitors=('observed', 'size'),
        predicted=('predicted', 'mean'),
        observed=('observed', 'mean')
    ).reset_index()


def evaluate_scores(
    scores_df: pd.DataFrame,
    rollup_df: pd.DataFrame,
    response_feature: str = 'event_count'
) -> Dict[str, Any]:
    """
    Evaluate propensity scores against the response derived from the rollup.

    Returns metrics on coverage, validity, discrimination and calibration.
    """
    metrics = {}

    merged = rollup_df[['visitor_id', response_feature]].merge(
        scores_df, on='visitor_id', how='left'
    )
    labels = (merged[response_feature] > 0).to_numpy()

    metrics['total_visitors'] = len(rollup_df)
    metrics['scored_visitors'] = int(merged['propensity_score'].notna().sum())
    metrics['unscored_visitors'] = metrics['total_visitors'] - metrics['scored_visitors']

    scored = merged[merged['propensity_score'].notna()]
    probabilities = scored['probability'].to_numpy(dtype=float)
    scored_labels = (scored[response_feature] > 0).to_numpy()

    metrics['scores_out_of_range'] = int(
        ((scored['propensity_score'] < 0) | (scored['propensity_score'] > 100)).sum()
    )
    metrics['score_mean'] = float(scored['propensity_score'].mean()) if len(scored) else 0.0
    metrics['score_median'] = float(scored['propensity_score'].median()) if len(scored) else 0.0
    metrics['response_rate'] = float(labels.mean()) if len(labels) else 0.0

    metrics['auc'] = roc_auc(scored_labels, probabilities)

    calibration = calibration_table(scored_labels, probabilities)
    if len(calibration):
        weights = calibration['visitors'] / calibration['visitors'].sum()
        metrics['calibration_error'] = float(
            (weights * (calibration['predicted'] - calibration['observed']).abs()).sum()
        )
    else:
        metrics['calibration_error'] = float('nan')
    metrics['calibration'] = calibration.to_dict(orient='records')

    quality_score = 100
    if metrics['unscored_visitors'] > 0:
        quality_score -= 30
    if metrics['scores_out_of_range'] > 0:
        quality_score -= 30
    if np.isnan(metrics['auc']) or metrics['auc'] < 0.6:
        quality_score -= 20
    if np.isnan(metrics['calibration_error']) or metrics['calibration_error'] > 0.1:
        quality_score -= 10

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def run_evaluation(project_root: Path) -> Dict[str, Any]:
    """Run propensity pipeline evaluation."""
    output_dir = project_root / 'data' / 'propensity'
    results = {}

    print("=" * 60)
    print("VISITOR PROPENSITY EVALUATION")
    print("=" * 60)

    rollup_path = output_dir / 'visitor_rollup.parquet'
    scores_path = output_dir / 'propensity_scores.parquet'

    print("\n--- Stage 2: Visitor Rollup ---")
    rollup_df = None
    if rollup_path.exists():
        rollup_df = pd.read_parquet(rollup_path)
        results['rollup'] = evaluate_rollup(rollup_df)
        print(f"  Visitors: {results['rollup']['total_visitors']:,}")
        print(f"  Missing values: {results['rollup']['missing_values']}")
        print(f"  Quality Score: {results['rollup']['quality_score']}/100")
    else:
        print("  [MISSING] visitor_rollup.parquet")
        results['rollup'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Stage 3: Propensity Scores ---")
    if scores_path.exists() and rollup_df is not None:
        scores_df = pd.read_parquet(scores_path)
        results['scores'] = evaluate_scores(scores_df, rollup_df)
        print(f"  Scored visitors: {results['scores']['scored_visitors']:,}")
        print(f"  AUC: {results['scores']['auc']:.3f}")
        print(f"  Calibration error: {results['scores']['calibration_error']:.3f}")
        print(f"  Quality Score: {results['scores']['quality_score']}/100")
    else:
        print("  [MISSING] propensity_scores.parquet")
        results['scores'] = {'quality_score': 0, 'error': 'file not found'}

    scores = [r['quality_score'] for r in results.values() if 'quality_score' in r]
    overall_score = np.mean(scores) if scores else 0

    print("\n" + "=" * 60)
    print(f"Overall Quality Score: {overall_score:.1f}/100")
    print("=" * 60)

    results['overall'] = {
        'quality_score': overall_score,
        'stages_evaluated': len(scores),
        'all_files_present': all('error' not in r for r in results.values())
    }

    return results


def main():
    """Run evaluation and save results."""
    project_root = Path(__file__).parent.parent
    results = run_evaluation(project_root)

    output_path = project_root / 'evals' / 'propensity_results.json'
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    print(f"\nResults saved to: {output_path}")

    return results


if __name__ == '__main__':
    main()
