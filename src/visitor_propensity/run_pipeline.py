"""
Visitor Propensity Runner
=========================
Runs all 4 stages of the visitor propensity pipeline sequentially.

Usage:
    python -m src.visitor_propensity.run_pipeline --input-glob 'raw_data/hit_data/*.tsv'
    python -m src.visitor_propensity.run_pipeline --nrows 100000 --event-code 203
    python -m src.visitor_propensity.run_pipeline --interesting-page 'pricing|plans' --overview-page '^home$'

Output files (in data/propensity/):
    - visitor_rollup.parquet
    - propensity_scores.parquet
    - model_coefficients.parquet
    - score_buckets.parquet
    - propensity_histogram.png
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .errors import ModelFitError
from .stage1_raw_events import RawEventLoader, ColumnProjector
from .stage2_feature_rollup import FeatureAggregator
from .stage3_propensity_model import PropensityModelBuilder
from .stage4_score_report import ScoreReporter

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_full_pipeline(
    input_glob: str,
    output_dir: Path,
    nrows: Optional[int] = None,
    event_code: str = '203',
    response_feature: str = 'event_count',
    sample_size: int = 10000,
    interesting_page_pattern: str = r'interesting',
    overview_page_pattern: str = r'site overview'
) -> dict:
    """
    Run the complete propensity pipeline.

    Parameters
    ----------
    input_glob : str
        Glob pattern of headerless tab-delimited hit files
    output_dir : Path
        Directory for parquet outputs and the histogram
    nrows : int, optional
        Maximum number of hits to read (all when None)
    event_code : str
        Event code counted into event_count
    response_feature : str
        Rollup feature the binary response is derived from
    sample_size : int
        Maximum training sample size
    interesting_page_pattern : str
        Regex (case-insensitive) selecting interesting page names
    overview_page_pattern : str
        Regex (case-insensitive) selecting the site overview page names
    """
    print("=" * 70)
    print("Visitor Propensity Pipeline")
    print("=" * 70)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    total_start = time.time()

    # Stage 1: Raw events
    print("\n" + "=" * 70)
    stage1_start = time.time()
    raw_df = RawEventLoader(input_glob, nrows=nrows).run()
    events_df = ColumnProjector().run(raw_df)
    print(f"  - Visitors: {events_df['visitor_id'].nunique():,}")
    print(f"  - Browsers: {events_df['browser'].nunique():,}")
    print(f"\nStage 1 completed in {time.time() - stage1_start:.1f}s")

    # Stage 2: Feature rollup
    print("\n" + "=" * 70)
    stage2_start = time.time()
    rollup_df = FeatureAggregator(
        event_code=event_code,
        interesting_page_pattern=interesting_page_pattern,
        overview_page_pattern=overview_page_pattern
    ).run(events_df)
    rollup_df.to_parquet(output_dir / 'visitor_rollup.parquet', index=False)
    print("\nFeature statistics:")
    print(rollup_df.describe().to_string())
    print(f"\nStage 2 completed in {time.time() - stage2_start:.1f}s")

    # Stage 3: Propensity model
    print("\n" + "=" * 70)
    stage3_start = time.time()
    builder = PropensityModelBuilder(
        response_feature=response_feature,
        sample_size=sample_size
    )
    model, scores_df = builder.run(rollup_df)
    scores_df.to_parquet(output_dir / 'propensity_scores.parquet', index=False)
    coefficients = model.summary()
    coefficients.to_parquet(output_dir / 'model_coefficients.parquet', index=False)
    print("\nModel coefficients:")
    print(coefficients.to_string(index=False))
    print(f"\nStage 3 completed in {time.time() - stage3_start:.1f}s")

    # Stage 4: Score report
    print("\n" + "=" * 70)
    stage4_start = time.time()
    buckets = ScoreReporter(output_dir=output_dir).run(scores_df)
    print(f"\nStage 4 completed in {time.time() - stage4_start:.1f}s")

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"\nTotal time: {time.time() - total_start:.1f}s")
    print(f"\nOutput files:")
    for name in ['visitor_rollup.parquet', 'propensity_scores.parquet',
                 'model_coefficients.parquet', 'score_buckets.parquet',
                 'propensity_histogram.png']:
        print(f"  - {output_dir / name}")

    return {
        'events': events_df,
        'rollup': rollup_df,
        'model': model,
        'scores': scores_df,
        'buckets': buckets
    }


def main():
    project_root = Path(__file__).parent.parent.parent

    parser = argparse.ArgumentParser(description='Run Visitor Propensity Pipeline')
    parser.add_argument(
        '--input-glob',
        default=str(project_root / 'raw_data' / 'hit_data' / '*.tsv'),
        help='Glob pattern of hit data files'
    )
    parser.add_argument(
        '--output-dir',
        default=str(project_root / 'data' / 'propensity'),
        help='Output directory'
    )
    parser.add_argument('--nrows', type=int, default=None, help='Maximum hits to read')
    parser.add_argument('--event-code', default='203', help='Event code to count (default: 203)')
    parser.add_argument('--response-feature', default='event_count')
    parser.add_argument('--sample-size', type=int, default=10000)
    parser.add_argument(
        '--interesting-page',
        default=r'interesting',
        help='Regex of interesting page names (case-insensitive)'
    )
    parser.add_argument(
        '--overview-page',
        default=r'site overview',
        help='Regex of the site overview page name (case-insensitive)'
    )
    args = parser.parse_args()

    try:
        run_full_pipeline(
            input_glob=args.input_glob,
            output_dir=Path(args.output_dir),
            nrows=args.nrows,
            event_code=args.event_code,
            response_feature=args.response_feature,
            sample_size=args.sample_size,
            interesting_page_pattern=args.interesting_page,
            overview_page_pattern=args.overview_page
        )
    except (FileNotFoundError, ModelFitError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
