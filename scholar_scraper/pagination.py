"""Lazy iterators over multi-page Scholar listings"""

import codecs
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from bs4 import BeautifulSoup, Tag
from loguru import logger

from .author_parser import AuthorParser
from .config import MAX_PAGES
from .models import Author, Publication, PublicationSource
from .parser import PublicationParser

if TYPE_CHECKING:
    from .navigator import Navigator

TOTALRESULTSRE = re.compile(r"(^|\s*About)\s*([0-9,\.\s']+)")
ONCLICKRE = re.compile(r"window\.location='([^']*)'")


@dataclass
class PageCursor:
    """Current page of a listing and the read position in its rows"""

    url: str
    soup: BeautifulSoup
    rows: List[Tag] = field(default_factory=list)
    position: int = 0

    def has_rows(self) -> bool:
        return self.position < len(self.rows)

    def take(self) -> Tag:
        row = self.rows[self.position]
        self.position += 1
        return row


class PagedIterator:
    """
    Async iterator over the rows of a paginated listing.

    Nothing is fetched until the first item is requested. ``next()`` and
    ``async for`` share the same cursor, so both styles can be mixed on one
    instance. Once the last page is drained the iterator stays exhausted.

    Subclasses provide row extraction, next-page discovery and row parsing.
    """

    def __init__(self, nav: "Navigator", url: str, max_pages: int = MAX_PAGES):
        self._nav = nav
        self._start_url = url
        self.max_pages = max_pages
        self._cursor: Optional[PageCursor] = None
        self._total_results = 0
        self._pages_loaded = 0
        self._exhausted = False

    @property
    def total_results(self) -> int:
        """Result count announced by the first page (approximate, 0 if absent)"""
        return self._total_results

    @property
    def pages_loaded(self) -> int:
        return self._pages_loaded

    @property
    def url(self) -> str:
        return self._cursor.url if self._cursor is not None else self._start_url

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        if self._exhausted:
            raise StopAsyncIteration

        if self._cursor is None:
            await self._load(self._start_url)
            self._total_results = self._parse_total_results(self._cursor.soup)

        while not self._cursor.has_rows():
            next_url = self._next_page_url(self._cursor.soup)
            if not next_url:
                logger.debug(f"No more pages after {self._cursor.url}")
                self._exhausted = True
                raise StopAsyncIteration
            if self._pages_loaded >= self.max_pages:
                logger.warning(f"Page limit of {self.max_pages} reached, stopping")
                self._exhausted = True
                raise StopAsyncIteration
            logger.info(f"📄 Loading page {self._pages_loaded + 1}")
            await self._load(next_url)

        return self._parse_row(self._cursor.take())

    async def next(self) -> Optional[Any]:
        """Next item, or None once the listing is exhausted"""
        try:
            return await self.__anext__()
        except StopAsyncIteration:
            return None

    async def _load(self, url: str) -> None:
        soup = await self._nav.get_soup(url)
        rows = self._extract_rows(soup)
        self._cursor = PageCursor(url=url, soup=soup, rows=rows)
        self._pages_loaded += 1
        logger.debug(f"Found {len(rows)} rows on {url}")

    def _extract_rows(self, soup: BeautifulSoup) -> List[Tag]:
        raise NotImplementedError

    def _next_page_url(self, soup: BeautifulSoup) -> Optional[str]:
        raise NotImplementedError

    def _parse_row(self, row: Tag) -> Any:
        raise NotImplementedError

    def _parse_total_results(self, soup: BeautifulSoup) -> int:
        return 0


class SearchScholarIterator(PagedIterator):
    """Publications from /scholar? searches and journal citation lists"""

    def __init__(self, nav: "Navigator", url: str, max_pages: int = MAX_PAGES):
        super().__init__(nav, url, max_pages=max_pages)
        if "/scholar?" in url:
            self._pubtype = PublicationSource.PUBLICATION_SEARCH_SNIPPET
        else:
            self._pubtype = PublicationSource.JOURNAL_CITATION_LIST
        self._parser = PublicationParser(nav)

    def _extract_rows(self, soup: BeautifulSoup) -> List[Tag]:
        return soup.select(".gs_r.gs_or.gs_scl") + soup.select(".gsc_mpat_ttl")

    def _next_page_url(self, soup: BeautifulSoup) -> Optional[str]:
        icon = soup.select_one(".gs_ico.gs_ico_nav_next")
        if icon is None or icon.parent is None:
            return None
        return icon.parent.get("href") or None

    def _parse_total_results(self, soup: BeautifulSoup) -> int:
        if soup.select_one(".gs_pda") is not None:
            return 0
        for element in soup.select(".gs_ab_mdw"):
            match = TOTALRESULTSRE.search(element.get_text())
            if not match:
                continue
            digits = re.sub(r"[,\.\s']", "", match.group(2))
            if digits.isdigit():
                return int(digits)
        return 0

    def _parse_row(self, row: Tag) -> Publication:
        return self._parser.get_publication(row, self._pubtype)


class AuthorSearchIterator(PagedIterator):
    """Authors from /citations?view_op=search_authors listings"""

    def __init__(self, nav: "Navigator", url: str, max_pages: int = MAX_PAGES):
        super().__init__(nav, url, max_pages=max_pages)
        self._parser = AuthorParser(nav)

    def _extract_rows(self, soup: BeautifulSoup) -> List[Tag]:
        return soup.select(".gsc_1usr")

    def _next_page_url(self, soup: BeautifulSoup) -> Optional[str]:
        button = soup.select_one("button.gsc_pgn_pnx")
        if button is None or button.has_attr("disabled"):
            return None
        match = ONCLICKRE.search(button.get("onclick", ""))
        if not match:
            return None
        # onclick escapes '=' and '&' as \x3d and \x26
        return codecs.decode(match.group(1), "unicode_escape")

    def _parse_row(self, row: Tag) -> Author:
        return self._parser.get_author(row)
