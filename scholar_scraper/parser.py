"""Publication parser for Scholar result rows and detail pages"""

import re
from typing import TYPE_CHECKING, List, Optional

from bs4 import Tag
from loguru import logger

from .models import Publication, PublicationSource

if TYPE_CHECKING:
    from .navigator import Navigator
    from .pagination import SearchScholarIterator

SCHOLARPUBRE = re.compile(r"cites=([\d,]*)")
CITATIONPUBRE = re.compile(r"citation_for_view=([\w-]*:[\w-]*)")
AUTHORIDRE = re.compile(r"\?user=(.*?)&amp;")
CITATIONPUB = "/citations?hl=en&view_op=view_citation&citation_for_view={0}"
BIBCITE = "/scholar?hl=en&q=info:{0}:scholar.google.com/&output=cite&scirp={1}&hl=en"
CITEDBYLINK = "/scholar?hl=en&cites={0}"

# Author-list tokens that are really venue fragments
_NOT_AN_AUTHOR = ("Proceedings", "Conference", "Journal", "(", ")", "[", "]", "Transactions")

# Detail-page fields copied verbatim into bib
_BIB_FIELDS = {
    "journal": "journal",
    "conference": "conference",
    "volume": "volume",
    "issue": "number",
    "pages": "pages",
    "publisher": "publisher",
}


def _text(tag: Optional[Tag]) -> str:
    return tag.get_text() if tag is not None else ""


def _strip_abstract_prefix(text: str) -> str:
    if text.lower().startswith("abstract"):
        return text[len("abstract"):].strip()
    return text


class PublicationParser:
    """Turn Scholar HTML rows into Publication records"""

    def __init__(self, nav: "Navigator"):
        self.nav = nav

    def get_publication(self, row: Tag, pubtype: PublicationSource) -> Publication:
        publication = Publication(source=pubtype)
        if pubtype is PublicationSource.AUTHOR_PUBLICATION_ENTRY:
            return self._citation_pub(row, publication)
        if pubtype is PublicationSource.PUBLICATION_SEARCH_SNIPPET:
            return self._scholar_pub(row, publication)
        return publication

    def _citation_pub(self, row: Tag, publication: Publication) -> Publication:
        """Row of the publication table on an author profile"""
        title_link = row.select_one("a.gsc_a_at")
        publication.bib["title"] = _text(title_link)
        if title_link is not None:
            match = CITATIONPUBRE.search(title_link.get("href", ""))
            if match:
                publication.author_pub_id = match.group(1)

        citedby = row.select_one(".gsc_a_ac")
        if citedby is not None:
            citedby_text = citedby.get_text().strip()
            if citedby_text.isdigit():
                publication.num_citations = int(citedby_text)
                href = citedby.get("href")
                if href:
                    publication.citedby_url = href
                    match = SCHOLARPUBRE.search(href)
                    if match:
                        publication.cites_id = match.group(1).split(",")

        year = _text(row.select_one(".gsc_a_h")).strip()
        if year:
            publication.bib["pub_year"] = year

        gray = row.select(".gs_gray")
        publication.bib["citation"] = gray[1].get_text() if len(gray) > 1 else ""
        return publication

    def _scholar_pub(self, row: Tag, publication: Publication) -> Publication:
        """Row of a /scholar? search result page"""
        databox = row.select_one(".gs_ri") or row
        cid = row.get("data-cid")
        pos = row.get("data-rp")
        if pos is not None and str(pos).isdigit():
            publication.gsrank = int(pos) + 1

        title = databox.select_one("h3.gs_rt")
        if title is not None:
            for badge in title.select(".gs_ctu, .gs_ctc"):
                badge.decompose()
            publication.bib["title"] = title.get_text().strip()
            link = title.find("a")
            if link is not None:
                publication.pub_url = link.get("href")

        author_div = databox.select_one(".gs_a")
        authorinfo = _text(author_div).replace("\xa0", " ")
        publication.bib["author"] = self._get_author_list(authorinfo)
        if author_div is not None:
            publication.author_id = self._get_author_id_list(author_div.decode_contents())

        venueyear = authorinfo.split(" - ")
        if len(venueyear) <= 2:
            publication.bib["venue"] = "NA"
            publication.bib["pub_year"] = "NA"
        else:
            parts = venueyear[1].split(",")
            year = parts[-1].strip()
            if re.fullmatch(r"\d{4}", year):
                publication.bib["pub_year"] = year
                venue = ",".join(parts[:-1]) if len(parts) >= 2 else "NA"
            else:
                publication.bib["pub_year"] = "NA"
                venue = ",".join(parts)
            publication.bib["venue"] = venue.strip() or "NA"

        abstract = databox.select_one(".gs_rs")
        if abstract is not None:
            text = abstract.get_text().replace("…", "").replace("\n", " ").strip()
            publication.bib["abstract"] = _strip_abstract_prefix(text)

        if cid and pos is not None:
            publication.url_scholarbib = BIBCITE.format(cid, pos)
            if self.nav.publib:
                publication.url_add_sclib = self.nav.publib.replace("{id}", cid)

        for link in databox.select(".gs_fl a"):
            link_text = link.get_text()
            if "Cited by" in link_text:
                match = re.search(r"\d+", link_text)
                if match:
                    publication.num_citations = int(match.group(0))
                    publication.citedby_url = link.get("href")
                    cites = SCHOLARPUBRE.search(publication.citedby_url or "")
                    if cites:
                        publication.cites_id = cites.group(1).split(",")
            if "Related articles" in link_text:
                publication.url_related_articles = link.get("href")

        eprint = row.select_one(".gs_ggs.gs_fl a")
        if eprint is not None:
            publication.eprint_url = eprint.get("href")

        return publication

    @staticmethod
    def _get_author_list(authorinfo: str) -> List[str]:
        authors = []
        for author in authorinfo.split(" - ")[0].split(","):
            author = author.strip()
            if not author or re.search(r"\d", author):
                continue
            if any(token in author for token in _NOT_AN_AUTHOR):
                continue
            authors.append(author.replace("…", "").strip())
        return [a for a in authors if a]

    @staticmethod
    def _get_author_id_list(authorinfo_html: str) -> List[str]:
        ids = []
        for chunk in authorinfo_html.split(" - ")[0].split(","):
            match = AUTHORIDRE.search(chunk)
            ids.append(match.group(1) if match else "")
        return ids

    async def fill(self, publication: Publication) -> Publication:
        """Load the detail page of a profile publication"""
        if publication.source is PublicationSource.AUTHOR_PUBLICATION_ENTRY:
            if not publication.author_pub_id:
                logger.warning("Publication has no author_pub_id, cannot fill")
                return publication
            soup = await self.nav.get_soup(CITATIONPUB.format(publication.author_pub_id))
            self._fill_from_detail(soup, publication)
        publication.filled = True
        return publication

    def _fill_from_detail(self, soup, publication: Publication) -> None:
        title = soup.select_one("#gsc_oci_title")
        if title is not None:
            publication.bib["title"] = title.get_text()
        title_link = soup.select_one("a.gsc_oci_title_link")
        if title_link is not None:
            publication.pub_url = title_link.get("href")

        for item in soup.select(".gs_scl"):
            key = _text(item.select_one(".gsc_oci_field")).strip().lower()
            val = item.select_one(".gsc_oci_value")
            if val is None:
                continue

            if key in ("authors", "inventors"):
                authors = [a.strip() for a in val.get_text().split(",")]
                publication.bib["author"] = " and ".join(authors)
            elif key in _BIB_FIELDS:
                publication.bib[_BIB_FIELDS[key]] = val.get_text()
            elif key == "publication date":
                match = re.search(r"\d{4}", val.get_text())
                if match:
                    publication.bib["pub_year"] = match.group(0)
            elif key == "description":
                publication.bib["abstract"] = _strip_abstract_prefix(val.get_text())
            elif key == "total citations":
                link = val.find("a")
                match = SCHOLARPUBRE.search(link.get("href", "")) if link else None
                if match:
                    publication.cites_id = match.group(1).split(",")
                    publication.citedby_url = CITEDBYLINK.format(",".join(publication.cites_id))
            elif key == "scholar articles":
                for link in val.find_all("a"):
                    if link.get_text().lower() == "related articles":
                        href = link.get("href", "")
                        # Strip the leading "https://scholar.google.com" (26 chars)
                        if len(href) > 26:
                            publication.url_related_articles = href[26:]
                        break

        years = [int(y.get_text()) for y in soup.select(".gsc_oci_g_t") if y.get_text().strip().isdigit()]
        cites = [int(c.get_text()) for c in soup.select(".gsc_oci_g_al") if c.get_text().strip().isdigit()]
        cites_year = []
        for bar in soup.select(".gsc_oci_g_a"):
            href = bar.get("href", "")
            cites_year.append(int(href[-4:]) if href[-4:].isdigit() else 0)
        nonzero = dict(zip(cites_year, cites))
        publication.cites_per_year = {year: nonzero.get(year, 0) for year in years}

        eprint = soup.select_one(".gsc_vcd_title_ggi a")
        if eprint is not None:
            publication.eprint_url = eprint.get("href")

    async def citedby(self, publication: Publication) -> Optional["SearchScholarIterator"]:
        from .pagination import SearchScholarIterator

        if not publication.filled:
            publication = await self.fill(publication)
        if not publication.citedby_url:
            logger.warning("Publication has no citations link")
            return None
        return SearchScholarIterator(self.nav, publication.citedby_url)

    async def bibtex(self, publication: Publication) -> str:
        """Plain BibTeX rendering of the fields we know"""
        if not publication.filled:
            publication = await self.fill(publication)

        bib = publication.bib
        entry_type = bib.get("pub_type", "article")
        bib_id = bib.get("bib_id", "scholar_article")
        author = bib.get("author")
        if isinstance(author, list):
            author = " and ".join(author)

        fields = [
            ("title", bib.get("title")),
            ("author", author),
            ("journal", bib.get("journal")),
            ("booktitle", bib.get("conference")),
            ("volume", bib.get("volume")),
            ("number", bib.get("number")),
            ("pages", bib.get("pages")),
            ("year", bib.get("pub_year")),
            ("publisher", bib.get("publisher")),
        ]
        lines = [f"@{entry_type}{{{bib_id},"]
        lines += [f"  {name}={{{value}}}," for name, value in fields if value]
        lines.append("}")
        return "\n".join(lines) + "\n"
