"""
Site Search - поисковый движок по сайтам

Обход сайтов, лемматизация русского текста, инвертированный индекс
и поиск с ранжированием по релевантности.
"""

__version__ = "1.0.0"
