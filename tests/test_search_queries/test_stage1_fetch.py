"""
Tests for Stage 1: Search Log Fetch
===================================
"""

import base64
import pytest
import pandas as pd
import requests
from datetime import date
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.search_queries.cache import ParquetTableCache
from src.search_queries.config import ReportingConfig
from src.search_queries.errors import FetchError
from src.search_queries.stage1_fetch import (
    ReportingClient,
    SearchLogFetcher,
    wsse_header
)


TODAY = date(2024, 3, 31)


class FakeResponse:
    """Stands in for requests.Response."""

    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Replays canned responses and records every call."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'json': json, 'headers': headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_config(**overrides):
    values = dict(
        username='analyst:acme',
        shared_secret='s3cret',
        report_suite_id='acme-prod',
        poll_interval=0,
        max_polls=3
    )
    values.update(overrides)
    return ReportingConfig(**values)


def ranked_report(rows):
    return FakeResponse(200, {'report': {'data': [
        {'name': name, 'url': '', 'counts': [str(count)]} for name, count in rows
    ]}})


QUEUED = FakeResponse(200, {'reportID': 12345})
NOT_READY = FakeResponse(400, {'error': 'report_not_ready', 'error_description': 'Report not ready'})
ROWS = [('how to reset password', 120), ('mattress', 95), ('dogs and cats', 3)]


class TestWsseHeader:
    """Test the X-WSSE authentication header."""

    def test_fields(self):
        header = wsse_header('analyst:acme', 's3cret')

        assert header.startswith('UsernameToken Username="analyst:acme"')
        for name in ['PasswordDigest=', 'Nonce=', 'Created=']:
            assert name in header

    def test_digest_is_sha1(self):
        header = wsse_header('analyst:acme', 's3cret')
        digest = header.split('PasswordDigest="')[1].split('"')[0]

        assert len(base64.b64decode(digest)) == 20

    def test_nonce_changes(self):
        assert wsse_header('u', 's') != wsse_header('u', 's')


class TestReportingClient:
    """Test the queued report protocol."""

    def test_queue_then_get(self):
        session = FakeSession([QUEUED, ranked_report(ROWS)])
        client = ReportingClient(make_config(), session=session)

        df = client.fetch_ranked(date(2024, 3, 1), date(2024, 3, 30))

        assert [c['params']['method'] for c in session.calls] == ['Report.Queue', 'Report.Get']
        assert session.calls[1]['json'] == {'reportID': 12345}
        assert list(df.columns) == ['name', 'url', 'searches']
        assert list(df['searches']) == [120, 95, 3]

    def test_queue_request_body(self):
        session = FakeSession([QUEUED, ranked_report(ROWS)])
        ReportingClient(make_config(top_n=50), session=session).fetch_ranked(
            date(2024, 3, 1), date(2024, 3, 30)
        )

        description = session.calls[0]['json']['reportDescription']
        assert description['reportSuiteID'] == 'acme-prod'
        assert description['dateFrom'] == '2024-03-01'
        assert description['dateTo'] == '2024-03-30'
        assert description['metrics'] == [{'id': 'searches'}]
        assert description['elements'] == [{'id': 'searchkeyword', 'top': 50}]
        assert 'X-WSSE' in session.calls[0]['headers']

    def test_polls_until_ready(self):
        session = FakeSession([QUEUED, NOT_READY, NOT_READY, ranked_report(ROWS)])
        df = ReportingClient(make_config(), session=session).fetch_ranked(TODAY, TODAY)

        assert len(session.calls) == 4
        assert len(df) == 3

    def test_gives_up_after_max_polls(self):
        session = FakeSession([QUEUED, NOT_READY, NOT_READY, NOT_READY])

        with pytest.raises(FetchError, match='not ready'):
            ReportingClient(make_config(max_polls=3), session=session).fetch_ranked(TODAY, TODAY)

    def test_api_error(self):
        error = FakeResponse(400, {'error': 'Bad Request', 'error_description': 'Unknown metric'})
        session = FakeSession([error])

        with pytest.raises(FetchError, match='Unknown metric'):
            ReportingClient(make_config(), session=session).fetch_ranked(TODAY, TODAY)

    def test_non_json_response(self):
        session = FakeSession([FakeResponse(502, ValueError('no json'))])

        with pytest.raises(FetchError, match='non-JSON'):
            ReportingClient(make_config(), session=session).fetch_ranked(TODAY, TODAY)

    def test_transport_error(self):
        session = FakeSession([requests.ConnectionError('connection refused')])

        with pytest.raises(FetchError, match='Report.Queue'):
            ReportingClient(make_config(), session=session).fetch_ranked(TODAY, TODAY)

    def test_missing_counts(self):
        report = FakeResponse(200, {'report': {'data': [{'name': 'mattress', 'url': ''}]}})
        session = FakeSession([QUEUED, report])
        df = ReportingClient(make_config(), session=session).fetch_ranked(TODAY, TODAY)

        assert df.loc[0, 'searches'] == 0


class TestSearchLogFetcher:
    """Test cache-first fetching."""

    def test_miss_fetches_and_caches(self, temp_dir):
        session = FakeSession([QUEUED, ranked_report(ROWS)])
        cache = ParquetTableCache(temp_dir)
        fetcher = SearchLogFetcher(ReportingClient(make_config(), session=session), cache)

        df = fetcher.run(TODAY)

        assert len(df) == 3
        assert cache.path_for('site_searches').exists()
        description = session.calls[0]['json']['reportDescription']
        assert (description['dateFrom'], description['dateTo']) == ('2024-03-01', '2024-03-30')

    def test_hit_makes_no_calls(self, temp_dir, search_report):
        cache = ParquetTableCache(temp_dir)
        cache.put('site_searches', search_report)
        session = FakeSession([])

        df = SearchLogFetcher(ReportingClient(make_config(), session=session), cache).run(TODAY)

        assert session.calls == []
        assert len(df) == len(search_report)

    def test_second_run_uses_cache(self, temp_dir):
        session = FakeSession([QUEUED, ranked_report(ROWS)])
        fetcher = SearchLogFetcher(
            ReportingClient(make_config(), session=session),
            ParquetTableCache(temp_dir)
        )

        first = fetcher.run(TODAY)
        second = fetcher.run(TODAY)

        assert len(session.calls) == 2
        pd.testing.assert_frame_equal(first, second)

    def test_unreadable_cache_falls_through(self, temp_dir):
        cache = ParquetTableCache(temp_dir)
        cache.path_for('site_searches').write_bytes(b'garbage')
        session = FakeSession([QUEUED, ranked_report(ROWS)])

        df = SearchLogFetcher(ReportingClient(make_config(), session=session), cache).run(TODAY)

        assert len(df) == 3
        assert len(session.calls) == 2

    def test_sorted_and_capped(self):
        rows = [('a', 5), ('b', 50), ('c', 20), ('d', 1)]
        session = FakeSession([QUEUED, ranked_report(rows)])
        df = SearchLogFetcher(
            ReportingClient(make_config(top_n=3), session=session)
        ).run(TODAY)

        assert list(df['name']) == ['b', 'c', 'a']

    def test_empty_report(self, temp_dir):
        session = FakeSession([QUEUED, ranked_report([])])
        cache = ParquetTableCache(temp_dir)

        with pytest.raises(FetchError, match='Empty'):
            SearchLogFetcher(ReportingClient(make_config(), session=session), cache).run(TODAY)
        assert not cache.path_for('site_searches').exists()

    def test_no_client_and_no_cache(self, temp_dir):
        with pytest.raises(FetchError):
            SearchLogFetcher(None, ParquetTableCache(temp_dir)).run(TODAY)
