"""
Search Queries Module
=====================
Site search query analysis from a marketing analytics reporting API.

Stages:
1. Search Log Fetch - Ranked search terms for a trailing 30-day window (cached)
2. Cleaning - Drop unused columns, rename, select question-style queries
3. Text Normalization - Tokenize, lowercase, drop stopwords, stem, re-aggregate
4. Word Clouds - Frequency-sized word clouds of raw and normalized terms
"""

from .errors import SearchAnalysisError, ConfigurationError, FetchError
from .config import ReportingConfig, report_window
from .cache import TableCache, ParquetTableCache, NullCache
from .stage1_fetch import ReportingClient, SearchLogFetcher
from .stage2_clean import ColumnCleaner, QuestionFilter
from .stage3_normalize import TextNormalizer, to_ascii, english_stopwords
from .stage4_wordcloud import WordCloudRenderer

__all__ = [
    'SearchAnalysisError',
    'ConfigurationError',
    'FetchError',
    'ReportingConfig',
    'report_window',
    'TableCache',
    'ParquetTableCache',
    'NullCache',
    'ReportingClient',
    'SearchLogFetcher',
    'ColumnCleaner',
    'QuestionFilter',
    'TextNormalizer',
    'to_ascii',
    'english_stopwords',
    'WordCloudRenderer',
]
