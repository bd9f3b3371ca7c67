"""
Сниппеты для результатов поиска
"""
import html
from typing import List, Optional

from ..core.config import SearchConfig
from .morphology import MorphologyAnalyzer


def escape_html(text: Optional[str]) -> str:
    """Экранирование &, <, >, " и ' - сниппет вставляется в разметку"""
    if not text:
        return ""
    return html.escape(text, quote=True).replace("&#x27;", "&#39;")


class SnippetBuilder:
    """
    Выбор фрагмента текста с наибольшим числом слов запроса

    Окно длиной snippet_length сдвигается с шагом snippet_step; каждое окно
    оценивается числом различных слов запроса, найденных в нём (русские -
    по любой нормальной форме, остальные - подстрокой). При равенстве
    побеждает первое окно. Фрагмент расширяется на snippet_context
    символов влево.
    """

    def __init__(self, analyzer: MorphologyAnalyzer, config: Optional[SearchConfig] = None):
        self.analyzer = analyzer
        self.config = config or SearchConfig()

    def build(self, text: str, query: str) -> str:
        if not text:
            return ""

        length = self.config.snippet_length
        best_start = self.best_window(text, self._query_terms(query))

        start = max(0, best_start - self.config.snippet_context)
        end = min(len(text), best_start + length)
        snippet = text[start:end]

        if start > 0:
            snippet = "..." + snippet
        if end < len(text):
            snippet = snippet + "..."

        return escape_html(snippet)

    def best_window(self, text: str, terms: List[List[str]]) -> int:
        """Начало лучшего окна"""
        length = self.config.snippet_length
        lowered = text.lower()

        best_start = 0
        best_score = 0
        for i in range(0, len(text) - length + 1, self.config.snippet_step):
            window = lowered[i:i + length]
            score = sum(
                1 for variants in terms
                if any(v in window for v in variants)
            )
            if score > best_score:
                best_score = score
                best_start = i

        return best_start

    def _query_terms(self, query: str) -> List[List[str]]:
        """Для каждого слова запроса - варианты, которые ищутся в тексте"""
        terms = []
        for word in self.analyzer.words(query):
            if self.analyzer.is_russian_word(word):
                variants = self.analyzer.normal_forms(word)
            else:
                variants = [word]
            if variants:
                terms.append(variants)
        return terms
