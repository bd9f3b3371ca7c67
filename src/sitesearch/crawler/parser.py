"""
Разбор HTML страниц
"""
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..core.interfaces import IParser
from ..core.models import ParsedPage


class HtmlParser(IParser):
    """Текст, ссылки и заголовок страницы через BeautifulSoup"""

    def __init__(self, features: str = "html.parser"):
        self.features = features

    def parse(self, body: str, base_url: str) -> ParsedPage:
        if not body:
            return ParsedPage(text="")

        soup = BeautifulSoup(body, self.features)
        title = self._title(soup)

        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        links = []
        for a in soup.find_all("a", href=True):
            href = a["href"].strip()
            if not href or href.lower().startswith(("javascript:", "mailto:", "tel:")):
                continue
            links.append(urljoin(base_url, href))

        root = soup.body or soup
        text = re.sub(r"\s+", " ", root.get_text(" ", strip=True))

        return ParsedPage(text=text, links=links, title=title)

    def _title(self, soup: BeautifulSoup) -> Optional[str]:
        if soup.title is None:
            return None
        return soup.title.get_text(strip=True)
