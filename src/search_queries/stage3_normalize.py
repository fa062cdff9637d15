"""
Stage 3: Search Term Normalization
==================================
Collapses raw search terms onto normalized word stems:
1. ASCII coercion (characters without an ASCII form are dropped)
2. Whitespace tokenization, each token carrying the term's full metric value
3. Lowercasing
4. Stopword removal (NLTK English stopword list)
5. Porter stemming (NLTK)
6. Exclusion of caller-supplied stems
7. Re-aggregation by stem, sorted by summed metric descending

Output: normalized term table (term, <value_column>)
"""

import unicodedata
import pandas as pd
from typing import Iterable, Optional

import nltk
from nltk.corpus import stopwords as stopword_corpus
from nltk.stem.porter import PorterStemmer


def to_ascii(text) -> str:
    """NFKD-decompose and drop every non-ASCII character."""
    if not isinstance(text, str):
        return ''
    return unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')


def english_stopwords() -> frozenset:
    """NLTK English stopwords, fetching the corpus on first use."""
    try:
        words = stopword_corpus.words('english')
    except LookupError:
        nltk.download('stopwords', quiet=True)
        words = stopword_corpus.words('english')
    return frozenset(words)


class TextNormalizer:
    """
    Tokenizes, stems and re-aggregates search terms.

    Exclusions are matched after stemming, so they must be given in stemmed
    form (e.g. 'comput' rather than 'computer').
    """

    def __init__(
        self,
        exclude: Iterable[str] = (),
        stopwords: Optional[Iterable[str]] = None,
        value_column: str = 'searches'
    ):
        """
        Parameters
        ----------
        exclude : iterable of str
            Stemmed tokens removed after stemming
        stopwords : iterable of str, optional
            Stopword list (NLTK English stopwords when omitted)
        value_column : str
            Metric column summed per normalized term
        """
        self.exclude = frozenset(exclude)
        self.stopwords = frozenset(english_stopwords() if stopwords is None else stopwords)
        self.value_column = value_column
        self.stemmer = PorterStemmer()

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        print("Stage 3: Search Term Normalization")
        print("=" * 50)

        normalized = self.normalize(df)

        print(f"\n  - Raw terms: {len(df):,}")
        print(f"  - Normalized terms: {len(normalized):,}")
        print(f"  - {self.value_column} retained: {normalized[self.value_column].sum():,.0f} "
              f"(raw {df[self.value_column].sum():,.0f})")

        return normalized

    def normalize(self, df: pd.DataFrame) -> pd.DataFrame:
        value = self.value_column

        tokens = pd.DataFrame({
            'term': df['term'].map(to_ascii).str.split(),
            value: df[value].values
        })

        # One row per token; the term's full value is copied onto each token
        tokens = tokens.explode('term').dropna(subset=['term'])

        tokens['term'] = tokens['term'].str.lower()
        tokens = tokens[~tokens['term'].isin(self.stopwords)].copy()

        tokens['term'] = tokens['term'].map(self.stemmer.stem)
        tokens = tokens[~tokens['term'].isin(self.exclude)]

        grouped = tokens.groupby('term', as_index=False)[value].sum()
        grouped = grouped.sort_values([value, 'term'], ascending=[False, True])

        return grouped.reset_index(drop=True)
