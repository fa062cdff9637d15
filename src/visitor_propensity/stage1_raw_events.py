"""
Stage 1: Raw Event Loading
==========================
Reads headerless, tab-delimited clickstream hit files and projects the
positional columns onto named fields:

    0 visid_high   1 visid_low   2 visit_num   3 browser
    4 event_list   5 hit_time_gmt   6 page_event   7 pagename

The two visitor id halves are merged into a single visitor_id.

Output: projected hit table (one row per recorded hit)
"""

import glob
import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Optional
import warnings

warnings.filterwarnings('ignore')


RAW_COLUMNS = [
    'visid_high', 'visid_low', 'visit_num', 'browser',
    'event_list', 'hit_time_gmt', 'page_event', 'pagename'
]

INTEGER_COLUMNS = ['visit_num', 'hit_time_gmt', 'page_event']

OUTPUT_COLUMNS = [
    'visitor_id', 'visit_num', 'browser', 'event_list',
    'hit_time_gmt', 'page_event', 'pagename'
]


class RawEventLoader:
    """
    Loads every hit file matching a glob pattern into one DataFrame.

    Files are read in name order with all fields kept as strings; typing is
    left to the ColumnProjector.
    """

    def __init__(
        self,
        pattern: str,
        separator: str = '\t',
        nrows: Optional[int] = None
    ):
        """
        Parameters
        ----------
        pattern : str
            Glob pattern for the hit files (e.g. 'raw_data/*.tsv')
        separator : str
            Field delimiter
        nrows : int, optional
            Maximum number of rows to read across all files
        """
        self.pattern = pattern
        self.separator = separator
        self.nrows = nrows

    def matching_files(self) -> List[Path]:
        return [Path(p) for p in sorted(glob.glob(self.pattern))]

    def run(self) -> pd.DataFrame:
        """
        Read all matching files.

        Returns
        -------
        pd.DataFrame
            Raw hit rows with positional integer column labels 0-7

        Raises
        ------
        FileNotFoundError
            If the pattern matches no files
        """
        files = self.matching_files()
        if not files:
            raise FileNotFoundError(f"No hit files match pattern: {self.pattern}")

        print(f"Loading hit data from {len(files)} file(s)...")

        frames = []
        remaining = self.nrows
        for path in files:
            if remaining is not None and remaining <= 0:
                break

            df = pd.read_csv(
                path,
                sep=self.separator,
                header=None,
                usecols=list(range(len(RAW_COLUMNS))),
                dtype=str,
                keep_default_na=False,
                quoting=3,  # csv.QUOTE_NONE, hit feeds are not quoted
                nrows=remaining
            )
            frames.append(df)
            print(f"  - {path.name}: {len(df):,} rows")

            if remaining is not None:
                remaining -= len(df)

        raw_df = pd.concat(frames, ignore_index=True)
        print(f"  - Loaded {len(raw_df):,} hits")

        return raw_df


class ColumnProjector:
    """
    Names the positional hit columns and derives visitor_id.

    Rows whose visit number, hit time or page event cannot be parsed as
    integers are dropped.
    """

    def __init__(self, id_separator: str = '_'):
        self.id_separator = id_separator

    def run(self, raw_df: pd.DataFrame) -> pd.DataFrame:
        """
        Project raw positional columns.

        Parameters
        ----------
        raw_df : pd.DataFrame
            Output of RawEventLoader (at least 8 positional columns)

        Returns
        -------
        pd.DataFrame
            Columns: visitor_id, visit_num, browser, event_list,
            hit_time_gmt, page_event, pagename
        """
        if raw_df.shape[1] < len(RAW_COLUMNS):
            raise ValueError(
                f"Expected at least {len(RAW_COLUMNS)} columns, got {raw_df.shape[1]}"
            )

        df = raw_df.iloc[:, :len(RAW_COLUMNS)].copy()
        df.columns = RAW_COLUMNS

        df['visitor_id'] = (
            df['visid_high'].astype(str) + self.id_separator + df['visid_low'].astype(str)
        )

        for col in INTEGER_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors='coerce')

        invalid = df[INTEGER_COLUMNS].isna().any(axis=1)
        if invalid.any():
            print(f"  - Dropped {int(invalid.sum()):,} hits with unparseable numeric fields")
        df = df[~invalid].copy()

        df[INTEGER_COLUMNS] = df[INTEGER_COLUMNS].astype(np.int64)
        df['event_list'] = df['event_list'].fillna('').astype(str)
        df['pagename'] = df['pagename'].fillna('').astype(str)
        df['browser'] = df['browser'].fillna('').astype(str)

        return df[OUTPUT_COLUMNS].reset_index(drop=True)


def load_hit_files(pattern: str, nrows: Optional[int] = None) -> pd.DataFrame:
    """Load and project hit files in one call."""
    raw_df = RawEventLoader(pattern, nrows=nrows).run()
    return ColumnProjector().run(raw_df)
