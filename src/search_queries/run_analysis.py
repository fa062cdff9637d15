"""
Search Query Analysis Runner
============================
Fetches the site search report, cleans it, lists question-style queries and
renders raw and normalized word clouds.

Usage:
    export ADOBE_API_USERNAME=user:company ADOBE_API_SECRET=... ADOBE_RSID=suite
    python -m src.search_queries.run_analysis
    python -m src.search_queries.run_analysis --exclude mattress sale --no-cache

Output files (in data/search_queries/):
    - cache/site_searches.parquet
    - question_queries.csv, question_queries.html
    - normalized_terms.parquet
    - wordcloud_raw.png
    - wordcloud_normalized.png
"""

import argparse
import logging
import sys
import time
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from .cache import NullCache, ParquetTableCache
from .config import ReportingConfig
from .errors import ConfigurationError, SearchAnalysisError
from .stage1_fetch import ReportingClient, SearchLogFetcher
from .stage2_clean import ColumnCleaner, QuestionFilter
from .stage3_normalize import TextNormalizer
from .stage4_wordcloud import WordCloudRenderer

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_analysis(
    output_dir: Path,
    client: Optional[ReportingClient],
    use_cache: bool = True,
    exclude: Iterable[str] = (),
    metric_column: str = 'searches',
    today: Optional[date] = None
) -> dict:
    """
    Run the search query analysis.

    Parameters
    ----------
    output_dir : Path
        Directory for the cache, tables and word clouds
    client : ReportingClient, optional
        Reporting API client (None restricts the run to cached data)
    use_cache : bool
        Read and write the site_searches cache
    exclude : iterable of str
        Stemmed tokens dropped from the normalized cloud
    metric_column : str
        Report column holding the metric
    today : date, optional
        Reference date of the trailing window (defaults to today)
    """
    print("=" * 70)
    print("Site Search Query Analysis")
    print("=" * 70)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    total_start = time.time()

    cache = ParquetTableCache(output_dir / 'cache') if use_cache else NullCache()

    # Stage 1: Fetch
    print("\n" + "=" * 70)
    report_df = SearchLogFetcher(client, cache).run(today)

    # Stage 2: Clean + questions
    print("\n" + "=" * 70)
    print("Stage 2: Search Table Cleaning")
    print("=" * 50)
    searches_df = ColumnCleaner(metric_column=metric_column).run(report_df)
    questions_df = QuestionFilter().run(searches_df)
    print(f"\n  - Terms: {len(searches_df):,}")
    print(f"  - Question-style terms: {len(questions_df):,}")
    print("\nTop question-style queries:")
    print(questions_df.head(25).to_string(index=False))

    questions_df.to_csv(output_dir / 'question_queries.csv', index=False)
    questions_df.to_html(output_dir / 'question_queries.html', index=False)

    # Stage 3: Normalize
    print("\n" + "=" * 70)
    normalized_df = TextNormalizer(exclude=exclude).run(searches_df)
    normalized_df.to_parquet(output_dir / 'normalized_terms.parquet', index=False)

    # Stage 4: Word clouds
    print("\n" + "=" * 70)
    print("Stage 4: Word Clouds")
    print("=" * 50)
    renderer = WordCloudRenderer()
    raw_path = renderer.render(searches_df, output_dir / 'wordcloud_raw.png', 'Raw search terms')
    norm_path = renderer.render(
        normalized_df, output_dir / 'wordcloud_normalized.png', 'Normalized search terms'
    )
    print(f"\n  - {raw_path}")
    print(f"  - {norm_path}")

    print("\n" + "=" * 70)
    print("ANALYSIS COMPLETE")
    print("=" * 70)
    print(f"\nTotal time: {time.time() - total_start:.1f}s")

    return {
        'report': report_df,
        'searches': searches_df,
        'questions': questions_df,
        'normalized': normalized_df
    }


def main():
    project_root = Path(__file__).parent.parent.parent

    parser = argparse.ArgumentParser(description='Run Site Search Query Analysis')
    parser.add_argument(
        '--output-dir',
        default=str(project_root / 'data' / 'search_queries'),
        help='Output directory'
    )
    parser.add_argument('--no-cache', action='store_true', help='Always fetch from the API')
    parser.add_argument(
        '--exclude',
        nargs='*',
        default=[],
        help='Stemmed tokens to drop from the normalized word cloud'
    )
    args = parser.parse_args()

    try:
        config = ReportingConfig.from_env()
        client = ReportingClient(config)
        metric_column = config.metric_id
    except ConfigurationError as e:
        logger.warning(f"{e}; only cached data can be used")
        client = None
        metric_column = 'searches'

    try:
        run_analysis(
            output_dir=Path(args.output_dir),
            client=client,
            use_cache=not args.no_cache,
            exclude=args.exclude,
            metric_column=metric_column
        )
    except (SearchAnalysisError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
