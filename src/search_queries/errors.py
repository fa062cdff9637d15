"""Exceptions raised by the site search query analysis."""


class SearchAnalysisError(Exception):
    """Base class for search query analysis errors."""


class ConfigurationError(SearchAnalysisError):
    """Required reporting configuration is missing or invalid."""


class FetchError(SearchAnalysisError):
    """The reporting API did not return a usable search report."""
