"""Author parser: search snippets and profile sections"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, Optional, Union

from bs4 import BeautifulSoup, Tag
from loguru import logger

from .config import AUTHOR_PAGESIZE, BASE_URL
from .exceptions import ParsingError
from .models import Author, AuthorSection, AuthorSource, PublicationSource
from .parser import PublicationParser

if TYPE_CHECKING:
    from .navigator import Navigator

CITATIONAUTHRE = re.compile(r"user=([\w-]*)")
EMAILAUTHORRE = re.compile(r"Verified email at ")
CITATIONAUTH = "/citations?hl=en&user={0}"
COAUTH = "/citations?view_op=list_colleagues&hl=en&user={0}"

SORTBY_PARAMS = {
    "citedby": "",
    "year": "&view_op=list_works&sortby=pubdate",
}

SECTION_ORDER = (
    AuthorSection.BASICS,
    AuthorSection.INDICES,
    AuthorSection.COUNTS,
    AuthorSection.COAUTHORS,
    AuthorSection.PUBLICATIONS,
    AuthorSection.PUBLIC_ACCESS,
)


def _int(text: str, default: int = 0) -> int:
    digits = re.sub(r"[^\d]", "", text or "")
    return int(digits) if digits else default


@dataclass
class FillContext:
    """Per-fill parameters shared by every section handler"""

    parser: "AuthorParser"
    sortby_str: str
    publication_limit: int


def _text_of(tag: Optional[Tag]) -> str:
    return tag.get_text() if tag is not None else ""


def _find_tag_class_name(row: Tag, tag: str, text: str) -> Optional[str]:
    for element in row.find_all(tag):
        classes = element.get("class") or []
        if any(text in cls for cls in classes):
            return classes[0]
    return None


async def _fill_basics(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    name = soup.select_one("#gsc_prf_in")
    if name is not None:
        author.name = name.get_text()

    if author.source is AuthorSource.AUTHOR_PROFILE_PAGE:
        img = soup.select_one("#gsc_prf_pup-img")
        src = img.get("src") if img is not None else None
        if src and "avatar_scholar" not in src:
            author.url_picture = src

    affiliation = soup.select_one(".gsc_prf_il")
    if affiliation is not None:
        author.affiliation = affiliation.get_text()
        link = affiliation.find("a")
        match = re.search(r"org=(\d+)", link.get("href", "")) if link else None
        if match:
            author.organization = int(match.group(1))

    author.interests = [i.get_text().strip() for i in soup.select(".gsc_prf_inta")]

    email = soup.select_one("#gsc_prf_ivh.gsc_prf_il")
    if email is not None:
        if author.source is AuthorSource.AUTHOR_PROFILE_PAGE:
            email_text = email.get_text()
            parts = email_text.split(" ")
            if email_text != "No verified email" and len(parts) >= 4:
                author.email_domain = f"@{parts[3]}"
        homepage = email.select_one("a.gsc_prf_ila")
        if homepage is not None:
            author.homepage = homepage.get("href")

    index = soup.select(".gsc_rsb_std")
    if index:
        author.citedby = _int(index[0].get_text())


async def _fill_indices(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    index = soup.select(".gsc_rsb_std")
    if len(index) >= 6:
        values = [_int(cell.get_text()) for cell in index[:6]]
        (
            author.citedby,
            author.citedby5y,
            author.hindex,
            author.hindex5y,
            author.i10index,
            author.i10index5y,
        ) = values
    else:
        author.hindex = author.hindex5y = 0
        author.i10index = author.i10index5y = 0


async def _fill_counts(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    years = [_int(y.get_text()) for y in soup.select(".gsc_g_t")]
    cites = [0] * len(years)
    # Bars carry their position from the right in the z-index
    for bar in soup.select(".gsc_g_a"):
        match = re.search(r"z-index:(\d+)", bar.get("style", ""))
        if not match:
            continue
        i = int(match.group(1))
        if 0 < i <= len(cites):
            cites[len(cites) - i] = _int(_text_of(bar.select_one(".gsc_g_al")))
    author.cites_per_year = dict(zip(years, cites))


async def _fill_public_access(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    available = soup.select_one(".gsc_rsb_m_a")
    not_available = soup.select_one(".gsc_rsb_m_na")
    author.public_access = {
        "available": _int(available.get_text().split(" ")[0]) if available else 0,
        "not_available": _int(not_available.get_text().split(" ")[0]) if not_available else 0,
    }


async def _fill_coauthors(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    author.coauthors = []
    for coauth in soup.select(".gsc_rsb_a_desc"):
        link = coauth.find("a")
        match = CITATIONAUTHRE.search(link.get("href", "")) if link else None
        if not match:
            continue
        coauthor = ctx.parser.get_author(match.group(1))
        coauthor.source = AuthorSource.CO_AUTHORS_LIST
        coauthor.name = link.get_text()
        coauthor.affiliation = _text_of(coauth.select_one(".gsc_rsb_a_ext"))
        author.coauthors.append(coauthor)


async def _fill_publications(soup: BeautifulSoup, author: Author, ctx: FillContext) -> None:
    """Walk the publication table, 100 rows per request"""
    author.publications = []
    pub_parser = PublicationParser(ctx.parser.nav)
    url_citations = CITATIONAUTH.format(author.scholar_id) + ctx.sortby_str
    pubstart = 0

    while True:
        for row in soup.select(".gsc_a_tr"):
            author.publications.append(
                pub_parser.get_publication(row, PublicationSource.AUTHOR_PUBLICATION_ENTRY)
            )
            if ctx.publication_limit and len(author.publications) >= ctx.publication_limit:
                return

        more = soup.select_one("#gsc_bpf_more")
        if more is None or more.has_attr("disabled"):
            return
        pubstart += AUTHOR_PAGESIZE
        url = f"{url_citations}&cstart={pubstart}&pagesize={AUTHOR_PAGESIZE}"
        soup = await ctx.parser.nav.get_soup(url)


SectionHandler = Callable[[BeautifulSoup, Author, FillContext], Awaitable[None]]

SECTION_HANDLERS: Dict[AuthorSection, SectionHandler] = {
    AuthorSection.BASICS: _fill_basics,
    AuthorSection.INDICES: _fill_indices,
    AuthorSection.COUNTS: _fill_counts,
    AuthorSection.COAUTHORS: _fill_coauthors,
    AuthorSection.PUBLICATIONS: _fill_publications,
    AuthorSection.PUBLIC_ACCESS: _fill_public_access,
}


class AuthorParser:
    """Build Author records from search rows and fill them from profiles"""

    def __init__(self, nav: "Navigator"):
        self.nav = nav

    def get_author(self, data: Union[str, Tag]) -> Author:
        """Author from a scholar id, or from an author search row"""
        if isinstance(data, str):
            return Author(scholar_id=data, source=AuthorSource.AUTHOR_PROFILE_PAGE)

        author = Author(scholar_id="", source=AuthorSource.SEARCH_AUTHOR_SNIPPETS)
        link = data.find("a")
        match = CITATIONAUTHRE.search(link.get("href", "")) if link else None
        if match:
            author.scholar_id = match.group(1)
        author.url_picture = (
            f"{BASE_URL}/citations?view_op=medium_photo&user={author.scholar_id}"
        )

        name_class = _find_tag_class_name(data, "h3", "name")
        if name_class:
            author.name = data.find("h3", class_=name_class).get_text()

        aff_class = _find_tag_class_name(data, "div", "aff")
        if aff_class:
            affiliation = data.find("div", class_=aff_class).get_text()
            if affiliation:
                author.affiliation = affiliation

        eml_class = _find_tag_class_name(data, "div", "eml")
        if eml_class:
            email = data.find("div", class_=eml_class).get_text()
            if email:
                author.email_domain = EMAILAUTHORRE.sub("@", email)

        int_class = _find_tag_class_name(data, "a", "one_int")
        if int_class:
            author.interests = [i.get_text().strip() for i in data.find_all("a", class_=int_class)]

        cby_class = _find_tag_class_name(data, "div", "cby")
        if cby_class:
            citedby = data.find("div", class_=cby_class).get_text()
            match = re.search(r"\d+", citedby)
            if match:
                author.citedby = int(match.group(0))

        return author

    @staticmethod
    def _resolve_sections(sections: Iterable[str]) -> list:
        requested = set()
        for name in sections:
            try:
                requested.add(AuthorSection(name.lower()))
            except ValueError:
                logger.warning(f"Ignoring unknown author section '{name}'")
        if not requested:
            return list(SECTION_ORDER)
        return [section for section in SECTION_ORDER if section in requested]

    async def fill(
        self,
        author: Author,
        sections: Iterable[str] = (),
        sortby: str = "citedby",
        publication_limit: int = 0,
    ) -> Author:
        """
        Fill profile sections of ``author``; already filled sections are skipped.

        Args:
            author: Author to fill in place
            sections: Section names; empty means all of them
            sortby: 'citedby' or 'year' ordering of publications
            publication_limit: Stop after this many publications (0 = all)
        """
        if sortby not in SORTBY_PARAMS:
            raise ParsingError("Please enter a valid sortby parameter. Options: 'year', 'citedby'")
        sortby_str = SORTBY_PARAMS[sortby]

        todo = [
            section
            for section in self._resolve_sections(list(sections))
            if section.value not in author.filled
        ]
        if not todo:
            return author

        url_citations = CITATIONAUTH.format(author.scholar_id) + sortby_str
        soup = await self.nav.get_soup(f"{url_citations}&pagesize={AUTHOR_PAGESIZE}")

        canonical = soup.find("link", rel="canonical")
        match = CITATIONAUTHRE.search(canonical.get("href", "")) if canonical else None
        if match and match.group(1) != author.scholar_id:
            logger.warning(
                f"Changing scholar_id from {author.scholar_id} to {match.group(1)} following redirect."
            )
            author.scholar_id = match.group(1)

        ctx = FillContext(parser=self, sortby_str=sortby_str, publication_limit=publication_limit)
        for section in todo:
            await SECTION_HANDLERS[section](soup, author, ctx)
            author.filled.append(section.value)
        return author
