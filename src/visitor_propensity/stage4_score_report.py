"""
Stage 4: Propensity Score Report
================================
Buckets integer propensity scores and renders a histogram.

Output: score_buckets.parquet, propensity_histogram.png
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt


def bucket_scores(scores_df: pd.DataFrame, bucket_width: int = 10) -> pd.DataFrame:
    """
    Count visitors per propensity score bucket.

    Buckets are [0, w), [w, 2w), ... with a score of 100 placed in the
    last bucket.

    Returns
    -------
    pd.DataFrame
        Columns: bucket_start, bucket_end, visitors, share
    """
    if bucket_width <= 0 or 100 % bucket_width != 0:
        raise ValueError(f"bucket_width must divide 100, got {bucket_width}")

    starts = np.arange(0, 100, bucket_width)
    index = np.minimum(scores_df['propensity_score'].to_numpy() // bucket_width, len(starts) - 1)
    counts = np.bincount(index.astype(np.int64), minlength=len(starts))

    total = counts.sum()
    return pd.DataFrame({
        'bucket_start': starts,
        'bucket_end': starts + bucket_width,
        'visitors': counts,
        'share': counts / total if total > 0 else np.zeros(len(starts))
    })


def render_histogram(
    scores_df: pd.DataFrame,
    output_path: Union[str, Path],
    bucket_width: int = 10,
    title: str = 'Visitor Propensity Scores'
) -> Path:
    """Save a histogram of propensity_score (0-100) as a PNG."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.hist(
        scores_df['propensity_score'],
        bins=np.arange(0, 100 + bucket_width, bucket_width),
        color='steelblue',
        edgecolor='white'
    )
    ax.set_xlim(0, 100)
    ax.set_xlabel('Propensity score (%)')
    ax.set_ylabel('Visitors')
    ax.set_title(title)

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)

    return output_path


class ScoreReporter:
    """Buckets propensity scores and writes the histogram and bucket table."""

    def __init__(self, bucket_width: int = 10, output_dir: Optional[Path] = None):
        self.bucket_width = bucket_width
        self.output_dir = Path(output_dir) if output_dir is not None else None

    def run(self, scores_df: pd.DataFrame) -> pd.DataFrame:
        print("Stage 4: Propensity Score Report")
        print("=" * 50)

        buckets = bucket_scores(scores_df, self.bucket_width)

        print("\nScore distribution:")
        for row in buckets.itertuples(index=False):
            print(f"  {row.bucket_start:3d}-{row.bucket_end:<3d} {row.visitors:>10,}  ({row.share:.1%})")

        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            buckets.to_parquet(self.output_dir / 'score_buckets.parquet', index=False)
            path = render_histogram(
                scores_df,
                self.output_dir / 'propensity_histogram.png',
                bucket_width=self.bucket_width
            )
            print(f"\nHistogram saved to: {path}")

        return buckets
