"""
Морфологический анализ: текст -> леммы
"""
import re
import logging
from typing import Dict, List, Optional
from collections import Counter

from ..core.models import WordForm
from ..core.interfaces import IMorphology

logger = logging.getLogger(__name__)


RUSSIAN_WORD = re.compile(r"^[а-яё]+$")
ENGLISH_WORD = re.compile(r"^[a-z]+$")
NON_LETTERS = re.compile(r"[^а-яёa-z\s]")

# Служебные части речи: междометие, предлог, союз, частица
FUNCTION_POS = frozenset({"INTJ", "PREP", "CONJ", "PRCL"})

MIN_WORD_LENGTH = 2


class PymorphyMorphology(IMorphology):
    """
    Словарь русского языка на pymorphy3

    Анализатор загружается при первом обращении - словари занимают
    десятки мегабайт.
    """

    def __init__(self, analyzer=None):
        self._analyzer = analyzer

    @property
    def analyzer(self):
        if self._analyzer is None:
            import pymorphy3
            self._analyzer = pymorphy3.MorphAnalyzer(lang="ru")
            logger.info("[Morphology] pymorphy3 dictionaries loaded")
        return self._analyzer

    def parse(self, word: str) -> List[WordForm]:
        return [
            WordForm(normal_form=p.normal_form, pos=p.tag.POS)
            for p in self.analyzer.parse(word)
        ]


class MorphologyAnalyzer:
    """
    Извлечение лемм из текста

    1. Приведение к нижнему регистру
    2. Замена всего, кроме кириллицы, латиницы и пробелов, на пробел
    3. Русские слова -> нормальная форма (служебные части речи отбрасываются)
    4. Английские слова -> само слово
    """

    def __init__(self, morphology: Optional[IMorphology] = None):
        self.morphology = morphology or PymorphyMorphology()

    def lemmas(self, text: str) -> Dict[str, int]:
        """Леммы текста с количеством вхождений"""
        counts = Counter()

        for word in self._tokens(text):
            if self.is_russian_word(word):
                forms = self._safe_parse(word)
                if not forms:
                    continue
                first = forms[0]
                if first.pos in FUNCTION_POS:
                    continue
                counts[first.normal_form] += 1
            elif self._is_english_word(word):
                counts[word] += 1

        return dict(counts)

    def normal_forms(self, word: str) -> List[str]:
        """
        Все нормальные формы русского слова

        Пустой список для нерусских слов и при ошибке анализа.
        """
        word = word.lower()
        if not self.is_russian_word(word):
            return []

        forms = []
        for form in self._safe_parse(word):
            if form.normal_form not in forms:
                forms.append(form.normal_form)
        return forms

    def is_russian_word(self, word: str) -> bool:
        return len(word) >= MIN_WORD_LENGTH and RUSSIAN_WORD.match(word.lower()) is not None

    def words(self, text: str) -> List[str]:
        """Уникальные слова текста в порядке появления"""
        result = []
        for word in self._tokens(text):
            if word not in result:
                result.append(word)
        return result

    # ==================== Приватные методы ====================

    def _tokens(self, text: str) -> List[str]:
        cleaned = NON_LETTERS.sub(" ", (text or "").lower())
        return [w for w in cleaned.split() if len(w) >= MIN_WORD_LENGTH]

    def _is_english_word(self, word: str) -> bool:
        return len(word) >= MIN_WORD_LENGTH and ENGLISH_WORD.match(word) is not None

    def _safe_parse(self, word: str) -> List[WordForm]:
        try:
            return self.morphology.parse(word)
        except Exception as e:
            logger.warning(f"[Morphology] Failed to parse '{word}': {e}")
            return []
