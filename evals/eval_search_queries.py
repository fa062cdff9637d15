"""
Evaluation Script: Search Query Analysis
========================================
Evaluates the cached search report and the normalized term table written by
src.search_queries.run_analysis.

Metrics:
- Report coverage (terms, empty terms, metric total)
- Question-style query share
- Normalization compression (raw terms per normalized term)
- Metric mass of the normalized table relative to the token fan-out
"""

import pandas as pd
import numpy as np
from pathlib import Path
import json
import sys
from typing import Dict, Any

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.search_queries.stage2_clean import ColumnCleaner, QuestionFilter
from src.search_queries.stage3_normalize import to_ascii


def evaluate_report(searches_df: pd.DataFrame, value_column: str = 'searches') -> Dict[str, Any]:
    """Coverage of the cleaned (term, value) report."""
    metrics = {}

    metrics['total_terms'] = len(searches_df)
    metrics['empty_terms'] = int((searches_df['term'].str.strip() == '').sum())
    metrics['duplicate_terms'] = int(searches_df['term'].duplicated().sum())
    metrics['metric_total'] = float(searches_df[value_column].sum())
    metrics['non_ascii_terms'] = int(
        (searches_df['term'].map(to_ascii) != searches_df['term']).sum()
    )

    questions = QuestionFilter().run(searches_df)
    metrics['question_terms'] = len(questions)
    metrics['question_share'] = (
        len(questions) / len(searches_df) if len(searches_df) else 0.0
    )

    quality_score = 100
    if metrics['total_terms'] == 0:
        quality_score -= 50
    if metrics['empty_terms'] > 0:
        quality_score -= 10
    if metrics['duplicate_terms'] > 0:
        quality_score -= 10

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def evaluate_normalization(
    searches_df: pd.DataFrame,
    normalized_df: pd.DataFrame,
    value_column: str = 'searches'
) -> Dict[str, Any]:
    """Compression and metric mass of the normalized table."""
    metrics = {}

    token_counts = searches_df['term'].map(lambda t: len(to_ascii(t).split()))
    fanout_mass = float((token_counts * searches_df[value_column]).sum())

    metrics['normalized_terms'] = len(normalized_df)
    metrics['compression_ratio'] = (
        len(searches_df) / len(normalized_df) if len(normalized_df) else 0.0
    )
    metrics['fanout_mass'] = fanout_mass
    metrics['normalized_mass'] = float(normalized_df[value_column].sum())
    metrics['mass_retained'] = (
        metrics['normalized_mass'] / fanout_mass if fanout_mass > 0 else 0.0
    )
    metrics['top_terms'] = normalized_df.head(20).to_dict(orient='records')

    quality_score = 100
    if metrics['normalized_terms'] == 0:
        quality_score -= 50
    if metrics['normalized_mass'] > fanout_mass:
        # Filtering can only remove mass
        quality_score -= 40
    if normalized_df['term'].duplicated().any():
        quality_score -= 20

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def run_evaluation(project_root: Path) -> Dict[str, Any]:
    """Run search query evaluation."""
    output_dir = project_root / 'data' / 'search_queries'
    results = {}

    print("=" * 60)
    print("SEARCH QUERY EVALUATION")
    print("=" * 60)

    report_path = output_dir / 'cache' / 'site_searches.parquet'
    normalized_path = output_dir / 'normalized_terms.parquet'

    print("\n--- Stage 1-2: Search Report ---")
    searches_df = None
    if report_path.exists():
        searches_df = ColumnCleaner().run(pd.read_parquet(report_path))
        results['report'] = evaluate_report(searches_df)
        print(f"  Terms: {results['report']['total_terms']:,}")
        print(f"  Question share: {results['report']['question_share']:.1%}")
        print(f"  Quality Score: {results['report']['quality_score']}/100")
    else:
        print("  [MISSING] cache/site_searches.parquet")
        results['report'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Stage 3: Normalized Terms ---")
    if normalized_path.exists() and searches_df is not None:
        normalized_df = pd.read_parquet(normalized_path)
        results['normalization'] = evaluate_normalization(searches_df, normalized_df)
        print(f"  Normalized terms: {results['normalization']['normalized_terms']:,}")
        print(f"  Mass retained: {results['normalization']['mass_retained']:.1%}")
        print(f"  Quality Score: {results['normalization']['quality_score']}/100")
    else:
        print("  [MISSING] normalized_terms.parquet")
        results['normalization'] = {'quality_score': 0, 'error': 'file not found'}

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

    output_path = project_root / 'evals' / 'search_queries_results.json'
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    print(f"\nResults saved to: {output_path}")

    return results


if __name__ == '__main__':
    main()
