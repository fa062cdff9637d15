"""
Table cache for fetched reports.

A cache maps a key to a DataFrame. A missing or unreadable entry is a miss,
never an error.
"""

import logging
import pandas as pd
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class TableCache:
    """get/put interface for cached tables."""

    def get(self, key: str) -> Optional[pd.DataFrame]:
        raise NotImplementedError

    def put(self, key: str, df: pd.DataFrame) -> None:
        raise NotImplementedError


class NullCache(TableCache):
    """Never hits; writes are discarded."""

    def get(self, key: str) -> Optional[pd.DataFrame]:
        return None

    def put(self, key: str, df: pd.DataFrame) -> None:
        pass


class ParquetTableCache(TableCache):
    """
    Stores each table as <cache_dir>/<key>.parquet.

    Concurrent writers are not coordinated; the cache is meant for a single
    operator re-running the analysis.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.parquet"

    def get(self, key: str) -> Optional[pd.DataFrame]:
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            df = pd.read_parquet(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None

        logger.info(f"Loaded {len(df):,} cached rows from {path}")
        return df

    def put(self, key: str, df: pd.DataFrame) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_parquet(path, index=False)
        logger.info(f"Cached {len(df):,} rows to {path}")
