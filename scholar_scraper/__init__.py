"""Google Scholar Scraper
Async retrieval with proxy rotation, abuse detection and lazy pagination
"""

__version__ = "0.1.0"

from .author_parser import AuthorParser
from .exceptions import (
    AbuseDetectedError,
    CaptchaRequiredError,
    ConfigurationError,
    NoMoreSessionsError,
    ParsingError,
    RetrievalExhaustedError,
    ScholarScraperError,
)
from .models import Author, Journal, ProxyMode, Publication, TargetClass
from .navigator import Navigator
from .pagination import AuthorSearchIterator, PagedIterator, SearchScholarIterator
from .parser import PublicationParser
from .proxy_generator import NetworkPath, ProxyGenerator
from .retry import CooldownPolicy
from .scholarly import Scholarly, scholarly

__all__ = [
    "__version__",
    "Scholarly",
    "scholarly",
    "Navigator",
    "ProxyGenerator",
    "NetworkPath",
    "CooldownPolicy",
    "PagedIterator",
    "SearchScholarIterator",
    "AuthorSearchIterator",
    "PublicationParser",
    "AuthorParser",
    "Author",
    "Publication",
    "Journal",
    "ProxyMode",
    "TargetClass",
    "ScholarScraperError",
    "AbuseDetectedError",
    "CaptchaRequiredError",
    "ConfigurationError",
    "NoMoreSessionsError",
    "ParsingError",
    "RetrievalExhaustedError",
]
