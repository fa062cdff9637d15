"""
Reporting API configuration.

Credentials and report identifiers come from the environment and are read
once, at process start, into an immutable ReportingConfig.
"""

import os
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError


ENV_USERNAME = 'ADOBE_API_USERNAME'
ENV_SECRET = 'ADOBE_API_SECRET'
ENV_REPORT_SUITE = 'ADOBE_RSID'
ENV_METRIC = 'ADOBE_METRIC'
ENV_ELEMENT = 'ADOBE_ELEMENT'

DEFAULT_ENDPOINT = 'https://api.omniture.com/admin/1.4/rest/'


@dataclass(frozen=True)
class ReportingConfig:
    """Reporting API configuration."""
    # Credentials
    username: str
    shared_secret: str

    # Report
    report_suite_id: str
    metric_id: str = 'searches'
    element_id: str = 'searchkeyword'
    top_n: int = 5000
    lookback_days: int = 30

    # Transport
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 60.0
    poll_interval: float = 5.0  # Seconds between Report.Get calls
    max_polls: int = 60

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'ReportingConfig':
        """
        Build a config from environment variables.

        Raises
        ------
        ConfigurationError
            If username, shared secret or report suite id is not set
        """
        environ = os.environ if environ is None else environ

        required = {
            'username': ENV_USERNAME,
            'shared_secret': ENV_SECRET,
            'report_suite_id': ENV_REPORT_SUITE,
        }
        missing = [var for var in required.values() if not environ.get(var)]
        if missing:
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")

        values = {field_name: environ[var] for field_name, var in required.items()}
        if environ.get(ENV_METRIC):
            values['metric_id'] = environ[ENV_METRIC]
        if environ.get(ENV_ELEMENT):
            values['element_id'] = environ[ENV_ELEMENT]
        values.update(overrides)

        return cls(**values)


def report_window(today: Optional[date] = None, lookback_days: int = 30) -> Tuple[date, date]:
    """Trailing window of lookback_days ending yesterday, inclusive."""
    if lookback_days < 1:
        raise ValueError(f"lookback_days must be positive, got {lookback_days}")

    today = today or date.today()
    date_to = today - timedelta(days=1)
    date_from = date_to - timedelta(days=lookback_days - 1)
    return date_from, date_to
