"""
Stage 1: Search Log Fetch
=========================
Retrieves ranked site search terms and their metric for a trailing 30-day
window from the Adobe Analytics 1.4 Reporting API, or loads a cached copy.

The API queues a ranked report (Report.Queue) and serves it once ready
(Report.Get). Polling for a queued report is part of that protocol; any
other failure is raised immediately as a FetchError, with no retries.

Output: site_searches (cached table)
"""

import base64
import hashlib
import logging
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from .cache import NullCache, TableCache
from .config import ReportingConfig, report_window
from .errors import FetchError

logger = logging.getLogger(__name__)


REPORT_NOT_READY = 'report_not_ready'


def wsse_header(username: str, shared_secret: str) -> str:
    """X-WSSE UsernameToken header value for the 1.4 API."""
    nonce = uuid.uuid4().hex
    created = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')
    digest = hashlib.sha1((nonce + created + shared_secret).encode('utf-8')).digest()

    return (
        f'UsernameToken Username="{username}", '
        f'PasswordDigest="{base64.b64encode(digest).decode("ascii")}", '
        f'Nonce="{base64.b64encode(nonce.encode("utf-8")).decode("ascii")}", '
        f'Created="{created}"'
    )


class ReportingClient:
    """Minimal client for ranked reports on the Adobe Analytics 1.4 API."""

    def __init__(self, config: ReportingConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def call(self, method: str, body: Dict[str, Any]) -> requests.Response:
        """POST one API method. Transport errors are raised as FetchError."""
        headers = {'X-WSSE': wsse_header(self.config.username, self.config.shared_secret)}
        try:
            return self.session.post(
                self.config.endpoint,
                params={'method': method},
                json=body,
                headers=headers,
                timeout=self.config.timeout
            )
        except requests.RequestException as e:
            raise FetchError(f"{method} request failed: {e}") from e

    def queue_ranked(self, date_from: date, date_to: date) -> int:
        """Queue a ranked report and return its report id."""
        body = {
            'reportDescription': {
                'reportSuiteID': self.config.report_suite_id,
                'dateFrom': date_from.isoformat(),
                'dateTo': date_to.isoformat(),
                'metrics': [{'id': self.config.metric_id}],
                'elements': [{'id': self.config.element_id, 'top': self.config.top_n}],
            }
        }
        response = self.call('Report.Queue', body)
        payload = self._payload(response, 'Report.Queue')

        if 'reportID' not in payload:
            raise FetchError(f"Report.Queue returned no reportID: {payload}")

        logger.info(f"Queued report {payload['reportID']} ({date_from} to {date_to})")
        return payload['reportID']

    def get_report(self, report_id: int) -> Dict[str, Any]:
        """Wait for a queued report and return its 'report' object."""
        for attempt in range(1, self.config.max_polls + 1):
            response = self.call('Report.Get', {'reportID': report_id})

            if response.status_code == 400 and self._error_code(response) == REPORT_NOT_READY:
                logger.info(f"Report {report_id} not ready (poll {attempt}/{self.config.max_polls})")
                time.sleep(self.config.poll_interval)
                continue

            payload = self._payload(response, 'Report.Get')
            if 'report' not in payload:
                raise FetchError(f"Report.Get returned no report: {payload}")
            return payload['report']

        raise FetchError(
            f"Report {report_id} not ready after {self.config.max_polls} polls"
        )

    def fetch_ranked(self, date_from: date, date_to: date) -> pd.DataFrame:
        """
        Ranked report rows as a DataFrame.

        Returns
        -------
        pd.DataFrame
            Columns: name, url, <metric_id>
        """
        report_id = self.queue_ranked(date_from, date_to)
        report = self.get_report(report_id)
        return self._rows_to_frame(report.get('data', []))

    def _rows_to_frame(self, rows: List[Dict[str, Any]]) -> pd.DataFrame:
        metric = self.config.metric_id
        records = []
        for row in rows:
            counts = row.get('counts') or [0]
            records.append({
                'name': row.get('name', ''),
                'url': row.get('url', ''),
                metric: pd.to_numeric(counts[0], errors='coerce')
            })

        df = pd.DataFrame(records, columns=['name', 'url', metric])
        df[metric] = df[metric].fillna(0)
        return df

    @staticmethod
    def _error_code(response: requests.Response) -> Optional[str]:
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload.get('error') if isinstance(payload, dict) else None

    @staticmethod
    def _payload(response: requests.Response, method: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError(
                f"{method} returned non-JSON response (HTTP {response.status_code})"
            ) from e

        if response.status_code != 200 or (isinstance(payload, dict) and 'error' in payload):
            description = payload.get('error_description', '') if isinstance(payload, dict) else ''
            error = payload.get('error', '') if isinstance(payload, dict) else payload
            raise FetchError(
                f"{method} failed (HTTP {response.status_code}): {error} {description}".strip()
            )

        if not isinstance(payload, dict):
            raise FetchError(f"{method} returned unexpected payload: {payload!r}")

        return payload


class SearchLogFetcher:
    """
    Cache-first fetch of the ranked site search report.

    A cache hit is returned as-is. On a miss, the report is fetched for the
    trailing window, capped at top_n rows by metric, persisted to the cache
    and returned.
    """

    def __init__(
        self,
        client: Optional[ReportingClient],
        cache: Optional[TableCache] = None,
        cache_key: str = 'site_searches'
    ):
        """
        Parameters
        ----------
        client : ReportingClient, optional
            API client; may be None when only cached data is to be used
        cache : TableCache, optional
            Table cache (NullCache when omitted)
        cache_key : str
            Key of the cached search table
        """
        self.client = client
        self.cache = cache or NullCache()
        self.cache_key = cache_key

    def run(self, today: Optional[date] = None) -> pd.DataFrame:
        print("Stage 1: Search Log Fetch")
        print("=" * 50)

        cached = self.cache.get(self.cache_key)
        if cached is not None:
            print(f"\nUsing cached '{self.cache_key}': {len(cached):,} terms")
            return cached

        if self.client is None:
            raise FetchError(
                f"No cached '{self.cache_key}' table and no reporting credentials configured"
            )

        config = self.client.config
        date_from, date_to = report_window(today, config.lookback_days)
        print(f"\nFetching {config.element_id}/{config.metric_id} "
              f"for {config.report_suite_id}: {date_from} to {date_to}")

        df = self.client.fetch_ranked(date_from, date_to)
        if df.empty:
            raise FetchError(f"Empty search report for {date_from} to {date_to}")

        df = df.sort_values(config.metric_id, ascending=False, kind='mergesort').head(config.top_n)
        df = df.reset_index(drop=True)

        self.cache.put(self.cache_key, df)
        print(f"  - Fetched {len(df):,} terms")

        return df
