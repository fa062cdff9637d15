"""
Stage 4: Word Clouds
====================
Renders frequency-sized word clouds of search terms.

Output: wordcloud_raw.png, wordcloud_normalized.png
"""

import pandas as pd
from pathlib import Path
from typing import Dict, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from wordcloud import WordCloud


class WordCloudRenderer:
    """Word cloud of a (term, value) table, sized by value."""

    def __init__(
        self,
        max_words: int = 200,
        width: int = 800,
        height: int = 400,
        background_color: str = 'white',
        random_state: int = 42,
        value_column: str = 'searches'
    ):
        self.max_words = max_words
        self.width = width
        self.height = height
        self.background_color = background_color
        self.random_state = random_state
        self.value_column = value_column

    def frequencies(self, table: pd.DataFrame) -> Dict[str, float]:
        """term -> summed value, positive values only."""
        positive = table[table[self.value_column] > 0]
        grouped = positive.groupby('term')[self.value_column].sum()
        return {str(term): float(v) for term, v in grouped.items() if str(term).strip()}

    def build(self, table: pd.DataFrame) -> WordCloud:
        frequencies = self.frequencies(table)
        if not frequencies:
            raise ValueError("No terms with a positive value to draw")

        cloud = WordCloud(
            width=self.width,
            height=self.height,
            max_words=self.max_words,
            background_color=self.background_color,
            random_state=self.random_state
        )
        return cloud.generate_from_frequencies(frequencies)

    def render(
        self,
        table: pd.DataFrame,
        output_path: Union[str, Path],
        title: str = ''
    ) -> Path:
        """Draw the cloud and save it as a PNG."""
        cloud = self.build(table)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        fig, ax = plt.subplots(figsize=(self.width / 100, self.height / 100))
        ax.imshow(cloud, interpolation='bilinear')
        ax.axis('off')
        if title:
            ax.set_title(title)

        fig.tight_layout()
        fig.savefig(output_path, dpi=100)
        plt.close(fig)

        return output_path
