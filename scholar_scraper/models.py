"""Data models and enums for the Scholar scraper"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProxyMode(Enum):
    """Upstream network path kinds"""

    NONE = "none"  # Direct connection
    SINGLEPROXY = "single_proxy"
    SCRAPERAPI = "scraperapi"  # Rotating commercial proxy
    LUMINATI = "luminati"  # Authenticated gateway


class TargetClass(Enum):
    """Endpoint families with independent retry state"""

    PREMIUM = "premium"  # Content endpoints (/scholar?...)
    SECONDARY = "secondary"  # Listing endpoints (/citations?...)


class AbuseSignal(Enum):
    """Classification of a response body"""

    CLEAN = "clean"
    SOFT_BLOCK = "soft_block"  # CAPTCHA, needs a human
    HARD_BLOCK = "hard_block"  # DOS-prevention page, abort


class PublicationSource(Enum):
    PUBLICATION_SEARCH_SNIPPET = "PUBLICATION_SEARCH_SNIPPET"
    AUTHOR_PUBLICATION_ENTRY = "AUTHOR_PUBLICATION_ENTRY"
    JOURNAL_CITATION_LIST = "JOURNAL_CITATION_LIST"


class AuthorSource(Enum):
    AUTHOR_PROFILE_PAGE = "AUTHOR_PROFILE_PAGE"
    SEARCH_AUTHOR_SNIPPETS = "SEARCH_AUTHOR_SNIPPETS"
    CO_AUTHORS_LIST = "CO_AUTHORS_LIST"


class AuthorSection(Enum):
    """Profile sections that can be filled on an Author"""

    BASICS = "basics"
    INDICES = "indices"
    COUNTS = "counts"
    COAUTHORS = "coauthors"
    PUBLICATIONS = "publications"
    PUBLIC_ACCESS = "public_access"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class Publication:
    """A publication record, partially filled depending on its source"""

    source: PublicationSource
    bib: Dict[str, Any] = field(default_factory=dict)
    filled: bool = False
    gsrank: Optional[int] = None
    author_id: List[str] = field(default_factory=list)
    num_citations: int = 0
    cites_id: List[str] = field(default_factory=list)
    citedby_url: Optional[str] = None
    cites_per_year: Dict[int, int] = field(default_factory=dict)
    author_pub_id: Optional[str] = None
    eprint_url: Optional[str] = None
    pub_url: Optional[str] = None
    url_add_sclib: Optional[str] = None
    url_related_articles: Optional[str] = None
    url_scholarbib: Optional[str] = None

    container_type = "Publication"

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class Author:
    """An author record; ``filled`` lists the sections already loaded"""

    scholar_id: str
    source: AuthorSource
    name: Optional[str] = None
    affiliation: Optional[str] = None
    organization: Optional[int] = None
    email_domain: Optional[str] = None
    url_picture: Optional[str] = None
    homepage: Optional[str] = None
    citedby: Optional[int] = None
    citedby5y: Optional[int] = None
    hindex: Optional[int] = None
    hindex5y: Optional[int] = None
    i10index: Optional[int] = None
    i10index5y: Optional[int] = None
    interests: List[str] = field(default_factory=list)
    cites_per_year: Dict[int, int] = field(default_factory=dict)
    public_access: Optional[Dict[str, int]] = None
    publications: List[Publication] = field(default_factory=list)
    coauthors: List["Author"] = field(default_factory=list)
    filled: List[str] = field(default_factory=list)

    container_type = "Author"

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class Journal:
    name: str
    h5_index: int
    h5_median: int
    url_citations: str
    comment: str = ""
