"""
Sample Hit Data
===============
Creates a smaller headerless hit file containing every hit of the most
active visitors, so the propensity pipeline can be developed on a subset.

Uses chunked reading to handle large hit feeds without running out of memory.

Usage:
    python scripts/sample_hit_data.py --top-visitors 50000
    python scripts/sample_hit_data.py --input 'raw_data/hit_data/*.tsv' --output sampled.tsv
"""

import argparse
import glob
import pandas as pd
from pathlib import Path
from collections import Counter
from typing import List
import time

# visid_high, visid_low positions in the hit feed
VISITOR_ID_COLUMNS = [0, 1]


def read_chunks(path: Path, chunk_size: int, usecols=None):
    return pd.read_csv(
        path,
        sep='\t',
        header=None,
        dtype=str,
        keep_default_na=False,
        quoting=3,
        usecols=usecols,
        chunksize=chunk_size
    )


def visitor_ids(chunk: pd.DataFrame) -> pd.Series:
    high, low = VISITOR_ID_COLUMNS
    return chunk[high] + '_' + chunk[low]


def count_visitor_activity(input_paths: List[Path], chunk_size: int = 500_000) -> Counter:
    """
    Count hits per visitor using chunked reading.

    Returns
    -------
    Counter
        Visitor ID -> hit count
    """
    print(f"Counting visitor activity in {len(input_paths)} file(s)...")
    print(f"  Using chunk size: {chunk_size:,}")

    visitor_counts = Counter()
    total_rows = 0

    for path in input_paths:
        for chunk in read_chunks(path, chunk_size, usecols=VISITOR_ID_COLUMNS):
            total_rows += len(chunk)
            visitor_counts.update(visitor_ids(chunk).values)

        print(f"  {path.name}: {total_rows:,} rows, {len(visitor_counts):,} unique visitors so far")

    print(f"  Total: {total_rows:,} rows, {len(visitor_counts):,} unique visitors")
    return visitor_counts


def get_top_visitors(visitor_counts: Counter, top_n: int) -> set:
    """Set of the top N visitors by hit count."""
    top_visitors = set(v for v, _ in visitor_counts.most_common(top_n))
    if not top_visitors:
        return top_visitors

    top_counts = sorted(visitor_counts[v] for v in top_visitors)
    print(f"\nTop {len(top_visitors):,} visitors:")
    print(f"  Min hits: {top_counts[0]:,}")
    print(f"  Max hits: {top_counts[-1]:,}")
    print(f"  Median hits: {top_counts[len(top_counts) // 2]:,}")

    return top_visitors


def extract_visitor_hits(
    input_paths: List[Path],
    output_path: Path,
    target_visitors: set,
    chunk_size: int = 500_000
) -> int:
    """Write every hit of the target visitors to a headerless TSV."""
    print(f"\nExtracting hits for {len(target_visitors):,} visitors...")

    total_extracted = 0
    first_chunk = True

    for path in input_paths:
        for chunk in read_chunks(path, chunk_size):
            filtered = chunk[visitor_ids(chunk).isin(target_visitors)]
            if len(filtered) == 0:
                continue

            filtered.to_csv(
                output_path,
                sep='\t',
                mode='w' if first_chunk else 'a',
                header=False,
                index=False
            )
            first_chunk = False
            total_extracted += len(filtered)

        print(f"  {path.name}: extracted {total_extracted:,} hits so far")

    print(f"  Total extracted: {total_extracted:,} hits")
    return total_extracted


def main():
    parser = argparse.ArgumentParser(description='Sample hit data with the most active visitors')
    parser.add_argument(
        '--top-visitors',
        type=int,
        default=50_000,
        help='Number of top visitors to include (default: 50000)'
    )
    parser.add_argument('--input', type=str, default=None, help='Glob pattern of hit files')
    parser.add_argument('--output', type=str, default=None, help='Output TSV path')
    parser.add_argument(
        '--chunk-size',
        type=int,
        default=500_000,
        help='Chunk size for reading (default: 500000)'
    )
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    pattern = args.input or str(project_root / 'raw_data' / 'hit_data' / '*.tsv')
    input_paths = [Path(p) for p in sorted(glob.glob(pattern))]
    if not input_paths:
        raise SystemExit(f"No hit files match {pattern}")

    if args.output:
        output_path = Path(args.output)
    else:
        output_path = project_root / 'raw_data' / f'hit_data_top{args.top_visitors // 1000}k.tsv'

    print("=" * 60)
    print("Hit Data Sampling Script")
    print("=" * 60)
    print(f"\nInput: {pattern} ({len(input_paths)} file(s))")
    print(f"Output: {output_path}")
    print(f"Top visitors: {args.top_visitors:,}")

    start_time = time.time()

    visitor_counts = count_visitor_activity(input_paths, args.chunk_size)
    top_visitors = get_top_visitors(visitor_counts, args.top_visitors)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    total_extracted = extract_visitor_hits(
        input_paths,
        output_path,
        top_visitors,
        args.chunk_size
    )

    elapsed = time.time() - start_time
    print("\n" + "=" * 60)
    print("SAMPLING COMPLETE")
    print("=" * 60)
    print(f"\nOutput file: {output_path}")
    print(f"Total hits: {total_extracted:,}")
    print(f"Total visitors: {len(top_visitors):,} / {len(visitor_counts):,}")
    print(f"Time elapsed: {elapsed:.1f}s")


if __name__ == '__main__':
    main()
