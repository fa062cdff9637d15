"""
Pytest Configuration and Fixtures
==================================
Shared fixtures for the visitor propensity and search query tests.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile
import shutil


# 2024-01-01 00:00:00 UTC
BASE_TIME = 1704067200
DAY = 86400


@pytest.fixture(scope="session")
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def mini_hits():
    """Generate projected synthetic hits for unit tests."""
    return generate_synthetic_hits(150)


@pytest.fixture(scope="session")
def mini_raw_hits():
    """Generate raw (positional, all-string) synthetic hits."""
    return to_raw_rows(generate_synthetic_hits(60))


def generate_synthetic_hits(n_visitors: int, seed: int = 42) -> pd.DataFrame:
    """
    Generate projected hit data for testing.

    Every tenth visitor has a single hit. Visit numbers start at a random
    offset and skip values so that visits and lifetime_visits differ.
    """
    rng = np.random.RandomState(seed)

    event_lists = ['', '1,200', '100;20110', '203', '203=3', '1,203=2;20', '2030']
    event_probs = [0.45, 0.25, 0.16, 0.03, 0.02, 0.02, 0.07]
    pagenames = ['home', 'interesting article', 'site overview', 'pricing', 'contact']
    page_events = [0, 0, 0, 10, 100]

    rows = []
    for i in range(n_visitors):
        visitor_id = f'{1000 + i}_{rng.randint(100000, 999999)}'

        if i % 10 == 0:
            n_hits = 1
        else:
            n_hits = rng.randint(2, 25)

        visit_num = rng.randint(1, 4)
        hit_time = BASE_TIME + rng.randint(0, 90) * DAY
        for _ in range(n_hits):
            if rng.rand() < 0.3:
                visit_num += rng.randint(1, 4)
                hit_time += rng.randint(0, 20) * DAY
            elif rng.rand() < 0.05:
                hit_time += DAY

            rows.append({
                'visitor_id': visitor_id,
                'visit_num': visit_num,
                'browser': str(rng.randint(1, 6)),
                'event_list': rng.choice(event_lists, p=event_probs),
                'hit_time_gmt': hit_time + rng.randint(0, 3600),
                'page_event': int(rng.choice(page_events)),
                'pagename': rng.choice(pagenames)
            })

    df = pd.DataFrame(rows)
    df['visit_num'] = df['visit_num'].astype(np.int64)
    df['hit_time_gmt'] = df['hit_time_gmt'].astype(np.int64)
    df['page_event'] = df['page_event'].astype(np.int64)
    return df


def to_raw_rows(hits: pd.DataFrame) -> pd.DataFrame:
    """Positional all-string rows as found in a headerless hit file."""
    ids = hits['visitor_id'].str.split('_', n=1, expand=True)
    raw = pd.DataFrame({
        0: ids[0],
        1: ids[1],
        2: hits['visit_num'].astype(str),
        3: hits['browser'],
        4: hits['event_list'],
        5: hits['hit_time_gmt'].astype(str),
        6: hits['page_event'].astype(str),
        7: hits['pagename'],
    })
    return raw


@pytest.fixture(scope="function")
def hit_files(temp_dir, mini_raw_hits):
    """Split raw hits across two headerless TSV files; returns the glob pattern."""
    half = len(mini_raw_hits) // 2
    hit_dir = temp_dir / 'hit_data'
    hit_dir.mkdir()
    mini_raw_hits.iloc[:half].to_csv(hit_dir / '01.tsv', sep='\t', header=False, index=False)
    mini_raw_hits.iloc[half:].to_csv(hit_dir / '02.tsv', sep='\t', header=False, index=False)
    return str(hit_dir / '*.tsv')


@pytest.fixture(scope="function")
def pipeline_hit_files(temp_dir, mini_hits):
    """The full synthetic hit set as one headerless TSV; returns the glob pattern."""
    hit_dir = temp_dir / 'raw_data'
    hit_dir.mkdir()
    to_raw_rows(mini_hits).to_csv(hit_dir / 'hits.tsv', sep='\t', header=False, index=False)
    return str(hit_dir / '*.tsv')


@pytest.fixture(scope="session")
def synthetic_rollup():
    """
    Visitor rollup whose response follows a logistic model of its features.

    Every visitor has at least 2 hits except every 25th, which has 1.
    """
    rng = np.random.RandomState(7)
    n = 400

    hit_count = rng.poisson(8, n) + 2
    hit_count[::25] = 1
    visits = np.maximum(1, rng.poisson(3, n))
    lifetime_visits = visits + rng.poisson(2, n)
    interesting = rng.binomial(visits, 0.4)
    overview = rng.poisson(1.5, n)
    days = np.maximum(1, visits - rng.binomial(visits, 0.3))
    months = np.maximum(1, rng.binomial(3, 0.4, n))

    logit = -2.0 + 0.6 * interesting + 0.15 * hit_count - 0.3 * overview
    response = rng.rand(n) < 1.0 / (1.0 + np.exp(-logit))
    event_count = np.where(response, rng.randint(1, 5, n), 0)

    return pd.DataFrame({
        'visitor_id': [f'V{i:05d}' for i in range(n)],
        'hit_count': hit_count,
        'lifetime_visits': lifetime_visits,
        'visits': visits,
        'event_count': event_count,
        'visits_to_interesting_page': interesting,
        'page_views_to_site_overview': overview,
        'days_visited': days,
        'months_visited': months,
    })


@pytest.fixture(scope="function")
def search_report():
    """Ranked search report rows as returned by the reporting API."""
    return pd.DataFrame({
        'name': [
            'how to reset password',
            'mattress',
            'why is this broken',
            'dogs and cats',
            'Where is my order',
            'what',
            'kittens',
            'café menu',
        ],
        'url': [''] * 8,
        'searches': [120, 95, 40, 3, 30, 12, 2, 7],
    })


@pytest.fixture(scope="function")
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp)
