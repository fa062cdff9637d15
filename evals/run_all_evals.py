"""
Run All Evaluations
===================
Master script to run both evaluation scripts and generate a combined report.
"""

import json
from pathlib import Path
from datetime import datetime

from eval_propensity import run_evaluation as run_propensity_eval
from eval_search_queries import run_evaluation as run_search_queries_eval


SECTIONS = [
    ('visitor_propensity', 'VISITOR PROPENSITY', run_propensity_eval),
    ('search_queries', 'SEARCH QUERIES', run_search_queries_eval),
]


def run_all_evaluations():
    """Run all evaluation scripts and combine results."""
    project_root = Path(__file__).parent.parent

    print("=" * 70)
    print("CLICKSTREAM ANALYTICS COMPLETE EVALUATION")
    print("=" * 70)
    print(f"Timestamp: {datetime.now().isoformat()}")
    print()

    all_results = {}
    section_scores = {}

    for key, title, evaluate in SECTIONS:
        print("\n" + "=" * 70)
        print(title)
        print("=" * 70)
        try:
            results = evaluate(project_root)
            all_results[key] = results
            section_scores[key] = results['overall']['quality_score']
        except (OSError, ValueError, KeyError) as e:
            print(f"Error running {key} eval: {e}")
            all_results[key] = {'error': str(e), 'quality_score': 0}
            section_scores[key] = 0

    overall_score = sum(section_scores.values()) / len(section_scores) if section_scores else 0

    print("\n" + "=" * 70)
    print("EVALUATION SUMMARY")
    print("=" * 70)
    for key, score in section_scores.items():
        print(f"\n  {key:<20} {score:.1f}/100")
    print(f"\n  OVERALL SCORE: {overall_score:.1f}/100")
    print("=" * 70)

    all_results['summary'] = {
        'timestamp': datetime.now().isoformat(),
        'section_scores': section_scores,
        'overall_score': overall_score,
    }

    output_path = project_root / 'evals' / 'all_results.json'
    with open(output_path, 'w') as f:
        json.dump(all_results, f, indent=2, default=str)

    print(f"\nCombined results saved to: {output_path}")

    return all_results


if __name__ == '__main__':
    run_all_evaluations()
