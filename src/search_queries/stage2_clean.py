"""
Stage 2: Search Table Cleaning
==============================
1. Column Cleaning - Drop unused report columns and rename the rest
2. Question Filtering - Select queries phrased as questions
"""

import re
import pandas as pd
from typing import Iterable, Sequence


QUESTION_WORDS = ('who', 'what', 'why', 'when', 'where', 'how')


class ColumnCleaner:
    """Reduces a ranked report to (term, <value_column>) columns."""

    def __init__(
        self,
        term_column: str = 'name',
        metric_column: str = 'searches',
        value_column: str = 'searches',
        drop_columns: Sequence[str] = ('url',)
    ):
        """
        Parameters
        ----------
        term_column : str
            Report column holding the search term
        metric_column : str
            Report column holding the metric value
        value_column : str
            Output name of the metric column
        drop_columns : sequence of str
            Columns removed before renaming
        """
        self.term_column = term_column
        self.metric_column = metric_column
        self.value_column = value_column
        self.drop_columns = tuple(drop_columns)

    def run(self, report_df: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in (self.term_column, self.metric_column) if c not in report_df.columns]
        if missing:
            raise ValueError(f"Report is missing columns: {missing}")

        df = report_df.drop(columns=[c for c in self.drop_columns if c in report_df.columns])
        df = df[[self.term_column, self.metric_column]].rename(columns={
            self.term_column: 'term',
            self.metric_column: self.value_column
        })

        df['term'] = df['term'].fillna('').astype(str)
        df[self.value_column] = pd.to_numeric(df[self.value_column], errors='coerce').fillna(0)

        return df.reset_index(drop=True)


class QuestionFilter:
    """
    Selects terms that start with an interrogative word followed by a space.

    Matching is case-sensitive unless case_sensitive=False. Matching rows
    are returned unmodified.
    """

    def __init__(
        self,
        question_words: Iterable[str] = QUESTION_WORDS,
        case_sensitive: bool = True
    ):
        self.question_words = tuple(question_words)
        self.case_sensitive = case_sensitive

        alternatives = '|'.join(re.escape(w) for w in self.question_words)
        flags = 0 if case_sensitive else re.IGNORECASE
        self.pattern = re.compile(rf'^(?:{alternatives}) ', flags)

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        mask = df['term'].map(lambda t: isinstance(t, str) and bool(self.pattern.match(t)))
        return df[mask.astype(bool)].reset_index(drop=True)
