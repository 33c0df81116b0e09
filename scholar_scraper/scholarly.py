"""High-level search API over an explicit Navigator"""

import json
import re
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import quote

from loguru import logger

from .author_parser import AuthorParser
from .exceptions import ParsingError
from .models import Author, Journal, Publication, PublicationSource
from .navigator import Navigator
from .pagination import AuthorSearchIterator, SearchScholarIterator
from .parser import PublicationParser
from .proxy_generator import ProxyGenerator

AUTHSEARCH = "/citations?hl=en&view_op=search_authors&mauthors={0}"
KEYWORDSEARCH = "/citations?hl=en&view_op=search_authors&mauthors=label:{0}"
KEYWORDSEARCHBASE = "/citations?hl=en&view_op=search_authors&mauthors={0}"
KEYWORDSEARCH_PATTERN = re.compile(r"[-: #(),;]+")
PUBSEARCH = "/scholar?hl=en&q={0}"
CITEDBYSEARCH = "/scholar?hl=en&cites={0}"
ORGSEARCH = "/citations?view_op=view_org&hl=en&org={0}"
TOPVENUES = "/citations?view_op=top_venues&hl=en&vq={0}"


class Scholarly:
    """
    Search entry points for authors, publications and journals.

    Each instance wraps its own Navigator unless one is passed in; pass the
    same Navigator to share retry state and sessions between instances.
    """

    def __init__(self, nav: Optional[Navigator] = None):
        self.nav = nav or Navigator()
        self._journal_categories: Optional[Dict[str, Dict[str, str]]] = None

    def set_retries(self, num_retries: int) -> None:
        self.nav.set_retries(num_retries)

    def set_timeout(self, timeout: float) -> None:
        self.nav.set_timeout(timeout)

    async def use_proxy(
        self,
        proxy_generator: Optional[ProxyGenerator],
        secondary_proxy_generator: Optional[ProxyGenerator] = None,
    ) -> None:
        await self.nav.use_proxy(proxy_generator, secondary_proxy_generator)

    @staticmethod
    def _construct_url(
        baseurl: str,
        patents: bool = True,
        citations: bool = True,
        year_low: Optional[int] = None,
        year_high: Optional[int] = None,
        sort_by: str = "relevance",
        include_last_year: str = "abstracts",
        start_index: int = 0,
    ) -> str:
        if sort_by == "date":
            if include_last_year == "abstracts":
                sortby_param = "&scisbd=1"
            elif include_last_year == "everything":
                sortby_param = "&scisbd=2"
            else:
                raise ParsingError(
                    "Invalid option for 'include_last_year', available options: 'everything', 'abstracts'"
                )
        elif sort_by == "relevance":
            sortby_param = ""
        else:
            raise ParsingError("Invalid option for 'sort_by', available options: 'relevance', 'date'")

        yr_lo = f"&as_ylo={year_low}" if year_low is not None else ""
        yr_hi = f"&as_yhi={year_high}" if year_high is not None else ""
        citations_param = f"&as_vis={1 - int(citations)}"
        patents_param = f"&as_sdt={1 - int(patents)},33"
        start_param = f"&start={start_index}" if start_index > 0 else ""

        return baseurl + yr_lo + yr_hi + citations_param + patents_param + sortby_param + start_param

    def search_pubs(
        self,
        query: str,
        patents: bool = True,
        citations: bool = True,
        year_low: Optional[int] = None,
        year_high: Optional[int] = None,
        sort_by: str = "relevance",
        include_last_year: str = "abstracts",
        start_index: int = 0,
    ) -> SearchScholarIterator:
        url = self._construct_url(
            PUBSEARCH.format(quote(query, safe="")),
            patents=patents,
            citations=citations,
            year_low=year_low,
            year_high=year_high,
            sort_by=sort_by,
            include_last_year=include_last_year,
            start_index=start_index,
        )
        return SearchScholarIterator(self.nav, url)

    def search_citedby(self, publication_id: Union[str, int], **kwargs) -> SearchScholarIterator:
        url = self._construct_url(CITEDBYSEARCH.format(publication_id), **kwargs)
        return SearchScholarIterator(self.nav, url)

    async def search_single_pub(self, pub_title: str, filled: bool = False) -> Optional[Publication]:
        """First search hit for ``pub_title``"""
        soup = await self.nav.get_soup(PUBSEARCH.format(quote(pub_title, safe="")))
        row = soup.select_one(".gs_r.gs_or.gs_scl") or soup.select_one(".gs_or")
        if row is None:
            logger.warning(f"No publication found for '{pub_title}'")
            return None
        parser = PublicationParser(self.nav)
        publication = parser.get_publication(row, PublicationSource.PUBLICATION_SEARCH_SNIPPET)
        if filled:
            publication = await parser.fill(publication)
        return publication

    def search_author(self, name: str) -> AuthorSearchIterator:
        return AuthorSearchIterator(self.nav, AUTHSEARCH.format(quote(name, safe="")))

    def search_keyword(self, keyword: str) -> AuthorSearchIterator:
        reg_keyword = KEYWORDSEARCH_PATTERN.sub("_", keyword)
        return AuthorSearchIterator(self.nav, KEYWORDSEARCH.format(quote(reg_keyword, safe="")))

    def search_keywords(self, keywords: Iterable[str]) -> AuthorSearchIterator:
        formatted = "+".join(
            f"label:{quote(KEYWORDSEARCH_PATTERN.sub('_', k), safe='')}" for k in keywords
        )
        return AuthorSearchIterator(self.nav, KEYWORDSEARCHBASE.format(formatted))

    async def search_author_id(
        self,
        scholar_id: str,
        filled: bool = False,
        sortby: str = "citedby",
        publication_limit: int = 0,
    ) -> Author:
        parser = AuthorParser(self.nav)
        author = parser.get_author(scholar_id)
        sections = [] if filled else ["basics"]
        return await parser.fill(author, sections, sortby, publication_limit)

    def search_pubs_custom_url(self, url: str) -> SearchScholarIterator:
        return SearchScholarIterator(self.nav, url)

    def search_author_custom_url(self, url: str) -> AuthorSearchIterator:
        return AuthorSearchIterator(self.nav, url)

    def search_author_by_organization(self, organization_id: int) -> AuthorSearchIterator:
        return AuthorSearchIterator(self.nav, ORGSEARCH.format(organization_id))

    async def search_org(self, name: str) -> List[Dict[str, str]]:
        """Institutions matching ``name`` as {'Organization', 'id'} dicts"""
        soup = await self.nav.get_soup(AUTHSEARCH.format(quote(name, safe="")))
        result = []
        for row in soup.select(".gsc_inst_res"):
            link = row.find("a")
            href = link.get("href", "") if link else ""
            if "org=" in href:
                result.append({"Organization": link.get_text(), "id": href.split("org=")[1]})
        if result:
            logger.info(f"Found {len(result)} institutions")
        return result

    async def fill(
        self,
        obj: Union[Author, Publication],
        sections: Iterable[str] = (),
        sortby: str = "citedby",
        publication_limit: int = 0,
    ) -> Union[Author, Publication]:
        if isinstance(obj, Author):
            return await AuthorParser(self.nav).fill(obj, sections, sortby, publication_limit)
        if isinstance(obj, Publication):
            return await PublicationParser(self.nav).fill(obj)
        raise ParsingError(f"Unknown container type: {type(obj).__name__}")

    async def bibtex(self, publication: Publication) -> str:
        if not isinstance(publication, Publication):
            logger.warning("Object not supported for bibtex exportation")
            return ""
        return await PublicationParser(self.nav).bibtex(publication)

    async def citedby(self, publication: Publication) -> Optional[SearchScholarIterator]:
        if not isinstance(publication, Publication):
            logger.warning("Object not supported for citedby")
            return None
        return await PublicationParser(self.nav).citedby(publication)

    async def get_related_articles(self, publication: Publication) -> Optional[SearchScholarIterator]:
        if not isinstance(publication, Publication):
            logger.warning("Not a publication object")
            return None

        if publication.source is PublicationSource.AUTHOR_PUBLICATION_ENTRY:
            if not publication.url_related_articles:
                publication = await PublicationParser(self.nav).fill(publication)
        elif publication.source is not PublicationSource.PUBLICATION_SEARCH_SNIPPET:
            return None

        if not publication.url_related_articles:
            logger.warning("Publication has no related articles link")
            return None
        return SearchScholarIterator(self.nav, publication.url_related_articles)

    @staticmethod
    def pprint(obj: Union[Author, Publication]) -> None:
        if not isinstance(obj, (Author, Publication)):
            logger.warning("Not a scholarly container object")
            return
        print(json.dumps(obj.to_dict(), indent=2, ensure_ascii=False))

    async def get_journal_categories(self) -> Dict[str, Dict[str, str]]:
        if self._journal_categories is not None:
            return self._journal_categories

        soup = await self.nav.get_soup(TOPVENUES.format("en"))
        categories = {}
        for link in soup.select("a.gs_md_li"):
            href = link.get("href", "")
            if "&vq=" in href:
                categories[link.get_text()] = {"None": href.split("&vq=")[1]}

        self._journal_categories = categories
        return categories

    async def get_journals(
        self, category: str = "English", subcategory: Optional[str] = None
    ) -> Dict[int, Journal]:
        """Top venues of a category, keyed by rank"""
        categories = await self.get_journal_categories()
        if category not in categories:
            raise ParsingError(f"Invalid category: {category}. Choose one from {list(categories)}")
        subcats = categories[category]
        key = subcategory or "None"
        if key not in subcats:
            raise ParsingError(
                f"Invalid subcategory: {subcategory} for {category}. Choose one from {list(subcats)}"
            )

        soup = await self.nav.get_soup(TOPVENUES.format(subcats[key]))
        ranks = soup.select(".gsc_mvt_p")
        names = soup.select(".gsc_mvt_t")
        h5indices = soup.select("a.gs_ibl.gsc_mp_anchor")
        h5medians = soup.select("span.gs_ibl")

        result = {}
        for rank, name, h5index, h5median in zip(ranks, names, h5indices, h5medians):
            result[int(rank.get_text().replace(".", ""))] = Journal(
                name=name.get_text(),
                h5_index=int(h5index.get_text()),
                h5_median=int(h5median.get_text()),
                url_citations=h5index.get("href", ""),
            )
        return result


scholarly = Scholarly()
"""Process-wide default, a plain Scholarly over its own Navigator"""
