"""
Stage 3: Propensity Model
=========================
Fits a logistic regression on the visitor rollup and scores every visitor:
1. Response Labeling - response_var = 1 if the response feature > 0
2. Sample Selection - multi-hit visitors, highest visitor_id first
3. Model Fitting - Binomial GLM with logit link (statsmodels)
4. Population Scoring - probability and integer percentage per visitor

Sample selection is deterministic: visitors are ordered by visitor_id
descending and the first sample_size are kept. This is not a random sample.

Output: propensity_scores.parquet, model_coefficients.parquet
"""

import logging
import pandas as pd
import numpy as np
from dataclasses import dataclass, field
from typing import List, Tuple

import statsmodels.api as sm
import statsmodels.formula.api as smf
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from .errors import ModelFitError

logger = logging.getLogger(__name__)


RESPONSE_COLUMN = 'response_var'
ID_COLUMN = 'visitor_id'


@dataclass(frozen=True)
class FittedPropensityModel:
    """A fitted propensity model. Used only for scoring."""
    results: object
    predictors: Tuple[str, ...]
    sample_size: int
    response_rate: float
    response_feature: str = field(default='event_count')
    dropped_predictors: Tuple[str, ...] = ()

    def score(self, rollup_df: pd.DataFrame) -> pd.DataFrame:
        """
        Score every visitor in a rollup.

        Parameters
        ----------
        rollup_df : pd.DataFrame
            Visitor rollup; must contain visitor_id and all predictors.
            The response feature, if present, is ignored.

        Returns
        -------
        pd.DataFrame
            Columns: visitor_id, probability, propensity_score (0-100 int)
        """
        missing = [c for c in self.predictors if c not in rollup_df.columns]
        if missing:
            raise ValueError(f"Rollup is missing predictor columns: {missing}")

        probability = np.asarray(
            self.results.predict(rollup_df[list(self.predictors)]),
            dtype=float
        )
        probability = np.clip(probability, 0.0, 1.0)

        return pd.DataFrame({
            ID_COLUMN: rollup_df[ID_COLUMN].values,
            'probability': probability,
            'propensity_score': np.rint(probability * 100).astype(np.int64)
        })

    def summary(self) -> pd.DataFrame:
        """Coefficient table: feature, coef, std_err, z, p_value."""
        return pd.DataFrame({
            'feature': self.results.params.index,
            'coef': self.results.params.values,
            'std_err': self.results.bse.values,
            'z': self.results.tvalues.values,
            'p_value': self.results.pvalues.values
        })


class PropensityModelBuilder:
    """
    Labels, samples, fits and scores the visitor rollup.

    visitor_id is never a model input, and the response feature is removed
    from the predictors once the label has been derived from it.
    """

    def __init__(
        self,
        response_feature: str = 'event_count',
        sample_size: int = 10000,
        min_hits: int = 2
    ):
        """
        Parameters
        ----------
        response_feature : str
            Rollup column the binary response is derived from
        sample_size : int
            Maximum number of visitors in the training sample
        min_hits : int
            Visitors with fewer hits are excluded from the training sample
        """
        self.response_feature = response_feature
        self.sample_size = sample_size
        self.min_hits = min_hits

    def run(self, rollup_df: pd.DataFrame) -> Tuple[FittedPropensityModel, pd.DataFrame]:
        """
        Execute label -> sample -> fit -> score.

        Returns
        -------
        tuple
            (fitted model, scores for every visitor in rollup_df)

        Raises
        ------
        ModelFitError
            If the sample cannot support a logistic fit
        """
        print("Stage 3: Propensity Model")
        print("=" * 50)

        print(f"\nStep 1: Labeling response from '{self.response_feature}'...")
        labeled = self.label(rollup_df)
        print(f"  - Response rate (all visitors): {labeled[RESPONSE_COLUMN].mean():.3f}")

        print("\nStep 2: Selecting training sample (visitor_id descending)...")
        sample = self.select_sample(labeled)
        print(f"  - Sample size: {len(sample):,} of {len(labeled):,} visitors")

        print("\nStep 3: Fitting logistic regression...")
        model = self.fit(sample)
        print(f"  - Predictors: {', '.join(model.predictors)}")

        print("\nStep 4: Scoring all visitors...")
        scores = model.score(labeled)
        print(f"  - Mean propensity score: {scores['propensity_score'].mean():.1f}")

        print("\n" + "=" * 50)
        print("Propensity Model Complete!")
        print(f"  - Scored visitors: {len(scores):,}")

        return model, scores

    def label(self, rollup_df: pd.DataFrame) -> pd.DataFrame:
        """Add response_var and drop the feature it was derived from."""
        if self.response_feature not in rollup_df.columns:
            raise ValueError(f"Response feature not in rollup: {self.response_feature}")

        labeled = rollup_df.copy()
        labeled[RESPONSE_COLUMN] = (labeled[self.response_feature] > 0).astype(np.int64)
        return labeled.drop(columns=[self.response_feature])

    def select_sample(self, labeled_df: pd.DataFrame) -> pd.DataFrame:
        """
        Deterministic training sample.

        Single-hit visitors are excluded, the rest ordered by visitor_id
        descending, and the first sample_size rows kept. visitor_id is
        dropped from the result.
        """
        eligible = labeled_df[labeled_df['hit_count'] >= self.min_hits]
        sample = eligible.sort_values(ID_COLUMN, ascending=False).head(self.sample_size)
        return sample.drop(columns=[ID_COLUMN]).reset_index(drop=True)

    def fit(self, sample_df: pd.DataFrame) -> FittedPropensityModel:
        """
        Fit a Binomial GLM with response_var as target and every other
        varying column as a predictor. Columns constant across the sample
        are dropped; any remaining collinearity is a ModelFitError.
        """
        if ID_COLUMN in sample_df.columns:
            sample_df = sample_df.drop(columns=[ID_COLUMN])

        if len(sample_df) == 0:
            raise ModelFitError("Training sample is empty")

        classes = sample_df[RESPONSE_COLUMN].nunique()
        if classes < 2:
            raise ModelFitError(
                f"Training sample has {classes} response class(es); need both 0 and 1"
            )

        candidates = [c for c in sample_df.columns if c != RESPONSE_COLUMN]

        # The intercept absorbs constant columns
        constant = [c for c in candidates if sample_df[c].nunique() <= 1]
        if constant:
            logger.warning(f"Dropping constant predictors: {constant}")
        predictors = [c for c in candidates if c not in constant]
        if not predictors:
            raise ModelFitError("No varying predictor columns left after labeling")

        formula = f"{RESPONSE_COLUMN} ~ " + " + ".join(predictors)
        glm = smf.glm(formula, data=sample_df, family=sm.families.Binomial())

        exog = np.asarray(glm.exog, dtype=float)
        rank = np.linalg.matrix_rank(exog)
        if rank < exog.shape[1]:
            raise ModelFitError(
                f"Design matrix is rank deficient ({rank} < {exog.shape[1]}); "
                f"predictors are collinear: {self._collinear_columns(glm)}"
            )

        try:
            results = glm.fit()
        except (PerfectSeparationError, np.linalg.LinAlgError) as e:
            raise ModelFitError(f"Logistic fit failed: {e}") from e

        logger.info(f"GLM converged: {results.converged}, deviance: {results.deviance:.2f}")

        return FittedPropensityModel(
            results=results,
            predictors=tuple(predictors),
            dropped_predictors=tuple(constant),
            sample_size=len(sample_df),
            response_rate=float(sample_df[RESPONSE_COLUMN].mean()),
            response_feature=self.response_feature
        )

    @staticmethod
    def _collinear_columns(glm) -> List[str]:
        """Design columns that add no rank when appended left to right."""
        exog = np.asarray(glm.exog, dtype=float)
        names = glm.exog_names
        redundant = []
        kept = np.empty((exog.shape[0], 0))
        for i, name in enumerate(names):
            candidate = np.column_stack([kept, exog[:, i]])
            if np.linalg.matrix_rank(candidate) > kept.shape[1]:
                kept = candidate
            else:
                redundant.append(name)
        return redundant
