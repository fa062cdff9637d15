"""Exceptions raised by the visitor propensity pipeline."""


class PropensityError(Exception):
    """Base class for visitor propensity pipeline errors."""


class ModelFitError(PropensityError):
    """The propensity model could not be fit on the selected sample."""
