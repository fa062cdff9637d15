"""
Stage 2: Visitor Feature Rollup
===============================
Summarizes projected hits into one row per visitor:
1. Hit and Visit Counts (hit_count, lifetime_visits, visits)
2. Event Occurrence Counts (event_count for a configured event code)
3. Interesting Page Visits (visits_to_interesting_page)
4. Site Overview Page Views (page_views_to_site_overview)
5. Distinct Dates (days_visited, months_visited)

The five partial tables are full outer joined on visitor_id. A visitor
missing from a partial table has zero for that table's features, so every
gap is filled with 0.

Output: visitor_rollup.parquet
"""

import re
import pandas as pd
import numpy as np
from functools import reduce
from typing import List, Optional
import warnings

warnings.filterwarnings('ignore')


FEATURE_COLUMNS = [
    'hit_count',
    'lifetime_visits',
    'visits',
    'event_count',
    'visits_to_interesting_page',
    'page_views_to_site_overview',
    'days_visited',
    'months_visited'
]

EVENT_DELIMITERS = re.compile(r'[,;]')


def parse_event_count(event_list: str, event_code: str) -> Optional[int]:
    """
    Count carried by the first occurrence of an event code in an event list.

    Event lists look like '1,200,203=3,20110'. A token '203=3' counts 3, a
    bare token '203' counts 1. Only whole tokens match, so '203' does not
    match '2030'.

    Returns
    -------
    int or None
        None when the code does not occur in the list
    """
    if not isinstance(event_list, str) or not event_list:
        return None

    for token in EVENT_DELIMITERS.split(event_list):
        name, has_value, value = token.strip().partition('=')
        if name != event_code:
            continue
        if has_value:
            digits = re.match(r'\d+', value.strip())
            if digits:
                return int(digits.group())
        return 1

    return None


class FeatureAggregator:
    """
    Builds the per-visitor feature rollup.

    Features:
    - hit_count: Number of hits
    - lifetime_visits: Highest visit number seen
    - visits: Distinct visit numbers seen
    - event_count: Summed occurrences of the configured event code
    - visits_to_interesting_page: Distinct visits that hit a matching page
    - page_views_to_site_overview: Plain page views of the overview page
    - days_visited / months_visited: Distinct UTC days / months with hits
    """

    def __init__(
        self,
        event_code: str = '203',
        interesting_page_pattern: str = r'interesting',
        overview_page_pattern: str = r'site overview',
        no_event_code: int = 0
    ):
        """
        Parameters
        ----------
        event_code : str
            Event code counted into event_count
        interesting_page_pattern : str
            Regex (case-insensitive) selecting "interesting" page names
        overview_page_pattern : str
            Regex (case-insensitive) selecting the site overview page names
        no_event_code : int
            page_event value of a plain page view
        """
        self.event_code = str(event_code)
        self.interesting_page_pattern = interesting_page_pattern
        self.overview_page_pattern = overview_page_pattern
        self.no_event_code = no_event_code

    def run(self, events_df: pd.DataFrame) -> pd.DataFrame:
        """
        Execute the feature rollup.

        Parameters
        ----------
        events_df : pd.DataFrame
            Projected hits with columns: visitor_id, visit_num, event_list,
            hit_time_gmt, page_event, pagename

        Returns
        -------
        pd.DataFrame
            One row per visitor_id with integer FEATURE_COLUMNS
        """
        print("Stage 2: Visitor Feature Rollup")
        print("=" * 50)
        print(f"\nHits: {len(events_df):,}, visitors: {events_df['visitor_id'].nunique():,}")

        print("\nStep 1: Counting hits and visits...")
        hit_counts = self._compute_hit_counts(events_df)

        print(f"\nStep 2: Counting event {self.event_code} occurrences...")
        event_counts = self._compute_event_counts(events_df)
        print(f"  - Visitors with event {self.event_code}: {len(event_counts):,}")

        print("\nStep 3: Counting visits to interesting pages...")
        interesting_visits = self._compute_interesting_page_visits(events_df)
        print(f"  - Visitors with interesting page visits: {len(interesting_visits):,}")

        print("\nStep 4: Counting site overview page views...")
        overview_views = self._compute_overview_page_views(events_df)
        print(f"  - Visitors with overview page views: {len(overview_views):,}")

        print("\nStep 5: Counting distinct visit dates...")
        visit_dates = self._compute_visit_dates(events_df)

        print("\nMerging all visitor features...")
        rollup_df = self._merge_features([
            hit_counts,
            event_counts,
            interesting_visits,
            overview_views,
            visit_dates
        ])

        print("\n" + "=" * 50)
        print("Visitor Feature Rollup Complete!")
        print(f"  - Total visitors: {len(rollup_df):,}")
        print(f"  - Features: {len(rollup_df.columns) - 1}")

        return rollup_df

    def _compute_hit_counts(self, df: pd.DataFrame) -> pd.DataFrame:
        """Hit count, highest visit number and distinct visits per visitor."""
        return df.groupby('visitor_id').agg(
            hit_count=('visit_num', 'size'),
            lifetime_visits=('visit_num', 'max'),
            visits=('visit_num', 'nunique')
        ).reset_index()

    def _compute_event_counts(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Sum of per-hit event counts.

        Hits where the code does not occur are dropped before summing, so
        visitors without the event are absent here and zero-filled later.
        """
        counts = df['event_list'].map(lambda s: parse_event_count(s, self.event_code))
        matched = df.loc[counts.notna(), ['visitor_id']].copy()
        matched['event_count'] = counts[counts.notna()].astype(np.int64)

        return matched.groupby('visitor_id').agg(
            event_count=('event_count', 'sum')
        ).reset_index()

    def _compute_interesting_page_visits(self, df: pd.DataFrame) -> pd.DataFrame:
        """Distinct visits per visitor that include an interesting page."""
        mask = df['pagename'].str.contains(
            self.interesting_page_pattern, case=False, regex=True, na=False
        )
        return df[mask].groupby('visitor_id').agg(
            visits_to_interesting_page=('visit_num', 'nunique')
        ).reset_index()

    def _compute_overview_page_views(self, df: pd.DataFrame) -> pd.DataFrame:
        """Plain page views (no event) of the site overview page."""
        mask = (
            df['pagename'].str.contains(
                self.overview_page_pattern, case=False, regex=True, na=False
            ) &
            (df['page_event'] == self.no_event_code)
        )
        return df[mask].groupby('visitor_id').agg(
            page_views_to_site_overview=('visit_num', 'size')
        ).reset_index()

    def _compute_visit_dates(self, df: pd.DataFrame) -> pd.DataFrame:
        """Distinct UTC calendar days and months with at least one hit."""
        hit_time = pd.to_datetime(df['hit_time_gmt'], unit='s', utc=True)
        dates = pd.DataFrame({
            'visitor_id': df['visitor_id'].values,
            'day': hit_time.dt.strftime('%Y-%m-%d').values,
            'month': hit_time.dt.strftime('%Y-%m').values
        })

        return dates.groupby('visitor_id').agg(
            days_visited=('day', 'nunique'),
            months_visited=('month', 'nunique')
        ).reset_index()

    def _merge_features(self, partial_tables: List[pd.DataFrame]) -> pd.DataFrame:
        """Full outer join on visitor_id, then zero-fill every gap."""
        result = reduce(
            lambda left, right: left.merge(right, on='visitor_id', how='outer'),
            partial_tables
        )

        result[FEATURE_COLUMNS] = result[FEATURE_COLUMNS].fillna(0).astype(np.int64)

        result = result[['visitor_id'] + FEATURE_COLUMNS]
        return result.sort_values('visitor_id').reset_index(drop=True)
