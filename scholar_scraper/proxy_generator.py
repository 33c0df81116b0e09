"""Network path management: proxy probing, fingerprinted sessions and rotation"""

import random
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit

import httpx
from curl_cffi.requests import AsyncSession
from loguru import logger

from .config import (
    ACCEPT_LANGUAGES,
    DEFAULT_TIMEOUT,
    IMPERSONATE_TARGETS,
    LUMINATI_HOST,
    PROXY_CHECK_URL,
    SCRAPERAPI_ACCOUNT_URL,
    SCRAPERAPI_HOST,
    SCRAPERAPI_PORT,
    SCRAPERAPI_TIMEOUT,
)
from .exceptions import ConfigurationError, NoMoreSessionsError
from .models import ProxyMode


def _with_scheme(url: str) -> str:
    if "://" not in url:
        return f"http://{url}"
    return url


def _validate_proxy_url(url: str) -> None:
    parts = urlsplit(url)
    try:
        parts.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid proxy URL {url!r}: {e}") from e
    if not parts.hostname:
        raise ConfigurationError(f"Invalid proxy URL {url!r}: missing host")


@dataclass(frozen=True)
class NetworkPath:
    """Upstream route for requests. Immutable; adoption sets ``verified``."""

    mode: ProxyMode = ProxyMode.NONE
    http: Optional[str] = None
    https: Optional[str] = None
    api_key: Optional[str] = None
    verify_ssl: bool = True
    verified: bool = False

    @classmethod
    def direct(cls) -> "NetworkPath":
        return cls(mode=ProxyMode.NONE, verified=True)

    @classmethod
    def single_proxy(cls, http: str, https: Optional[str] = None) -> "NetworkPath":
        if not http:
            raise ConfigurationError("A proxy URL is required for a single proxy")
        http = _with_scheme(http)
        https = _with_scheme(https) if https else http
        for url in {http, https}:
            _validate_proxy_url(url)
        return cls(mode=ProxyMode.SINGLEPROXY, http=http, https=https)

    @classmethod
    def luminati(cls, usr: str, passwd: str, proxy_port: int) -> "NetworkPath":
        if not usr or not passwd or not proxy_port:
            raise ConfigurationError("Not enough parameters for Luminati proxy")
        session_id = random.random()
        url = f"http://{usr}-session-{session_id}:{passwd}@{LUMINATI_HOST}:{proxy_port}"
        return cls(mode=ProxyMode.LUMINATI, http=url, https=url)

    @classmethod
    def scraper_api(
        cls,
        api_key: str,
        country_code: Optional[str] = None,
        premium: bool = False,
        render: bool = False,
    ) -> "NetworkPath":
        if not api_key:
            raise ConfigurationError("ScraperAPI API Key is required.")
        username = "scraperapi.retry_404=true"
        if country_code:
            username += f".country_code={country_code}"
        if premium:
            username += ".premium=true"
        if render:
            username += ".render=true"
        # ScraperAPI terminates TLS itself
        url = f"http://{username}:{api_key}@{SCRAPERAPI_HOST}:{SCRAPERAPI_PORT}"
        return cls(
            mode=ProxyMode.SCRAPERAPI,
            http=url,
            https=url,
            api_key=api_key,
            verify_ssl=False,
        )

    @property
    def host(self) -> Optional[str]:
        return urlsplit(self.http).hostname if self.http else None

    @property
    def port(self) -> Optional[int]:
        return urlsplit(self.http).port if self.http else None

    @property
    def username(self) -> Optional[str]:
        return urlsplit(self.http).username if self.http else None

    @property
    def password(self) -> Optional[str]:
        return urlsplit(self.http).password if self.http else None

    def proxies(self) -> Dict[str, str]:
        """Proxy mapping in the format curl_cffi and httpx expect"""
        if self.mode is ProxyMode.NONE or not self.http:
            return {}
        return {"http": self.http, "https": self.https or self.http}

    def __str__(self) -> str:
        if self.mode is ProxyMode.NONE:
            return "direct connection"
        return f"{self.mode.value} via {self.host}:{self.port}"


@dataclass(frozen=True)
class SessionIdentity:
    """Client signature presented to the server, redrawn on every rotation"""

    impersonate: str
    accept_language: str

    @classmethod
    def random(cls) -> "SessionIdentity":
        return cls(
            impersonate=random.choice(IMPERSONATE_TARGETS),
            accept_language=random.choice(ACCEPT_LANGUAGES),
        )

    def headers(self) -> Dict[str, str]:
        return {
            "accept-language": self.accept_language,
            "accept": "text/html,application/xhtml+xml,application/xml",
        }


class ProxyGenerator:
    """
    Owns one network path and the curl_cffi session bound to it.

    Features:
    - Liveness check before a proxy is adopted
    - ScraperAPI account-status check instead of a liveness check
    - Fresh browser fingerprint on every rotation
    - Rotation keeps the path, only the identity changes
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_rotations: Optional[int] = None,
    ):
        """
        Args:
            timeout: Request timeout in seconds for sessions and liveness checks
            max_rotations: Optional cap on rotations; None means unlimited
        """
        self.timeout = timeout
        self.max_rotations = max_rotations
        self.rotations = 0
        self.path = NetworkPath.direct()
        self.identity: Optional[SessionIdentity] = None
        self._session: Optional[AsyncSession] = None

    @property
    def proxy_mode(self) -> ProxyMode:
        return self.path.mode

    def has_proxy(self) -> bool:
        return self.path.verified and self.path.mode is not ProxyMode.NONE

    async def configure(self, path: NetworkPath) -> bool:
        """
        Validate ``path`` and adopt it as the current route.

        Returns:
            True if the path was adopted. A failed check returns False and
            leaves the previous path in place.
        """
        if path.mode is ProxyMode.NONE:
            works = True
        elif path.mode is ProxyMode.SCRAPERAPI:
            works = await self._check_scraperapi(path.api_key)
        else:
            works = await self._check_proxy(path)

        if not works:
            logger.warning(f"⚠️ Unable to set up {path}. Keeping {self.path}")
            return False

        self.path = replace(path, verified=True)
        if path.mode is ProxyMode.SCRAPERAPI:
            self.timeout = max(self.timeout, SCRAPERAPI_TIMEOUT)
        await self._replace_session()
        logger.success(f"✅ Network path ready: {self.path}")
        return True

    async def single_proxy(self, http: str, https: Optional[str] = None) -> bool:
        logger.info(f"Enabling proxies: http={http} https={https}")
        return await self.configure(NetworkPath.single_proxy(http, https))

    async def luminati(self, usr: str, passwd: str, proxy_port: int) -> bool:
        try:
            path = NetworkPath.luminati(usr, passwd, proxy_port)
        except ConfigurationError as e:
            logger.warning(f"{e}. Reverting to local connection.")
            return False
        return await self.configure(path)

    async def scraper_api(
        self,
        api_key: str,
        country_code: Optional[str] = None,
        premium: bool = False,
        render: bool = False,
    ) -> bool:
        path = NetworkPath.scraper_api(api_key, country_code, premium, render)
        return await self.configure(path)

    async def _check_proxy(self, path: NetworkPath) -> bool:
        """Liveness check through the proxy against a known-good endpoint"""
        try:
            async with httpx.AsyncClient(
                proxy=path.http, timeout=self.timeout, verify=path.verify_ssl
            ) as client:
                response = await client.get(PROXY_CHECK_URL)
        except httpx.HTTPError as e:
            logger.warning(f"Exception while testing proxy: {e}")
            if path.mode is ProxyMode.LUMINATI:
                logger.warning("Double check your credentials and try increasing the timeout")
            return False

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError as e:
                logger.warning(f"Proxy check returned a non-JSON body: {e}")
                return False
            if not isinstance(data, dict) or "origin" not in data:
                logger.warning("Proxy check answered without an origin, likely a captive page")
                return False
            logger.info(f"🌐 Proxy works! IP address: {data['origin']}")
            return True
        if response.status_code in (401, 407):
            logger.warning("Incorrect credentials for proxy!")
        else:
            logger.warning(f"Proxy check returned HTTP {response.status_code}")
        return False

    async def _check_scraperapi(self, api_key: Optional[str]) -> bool:
        """ScraperAPI cannot be checked directly; check the account instead"""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    SCRAPERAPI_ACCOUNT_URL, params={"api_key": api_key}
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error setting up ScraperAPI: {e}")
            return False

        if not isinstance(data, dict):
            logger.warning(f"Unexpected ScraperAPI account response: {data!r}")
            return False
        if "error" in data:
            logger.warning(data["error"])
            return False

        count = data.get("requestCount", 0)
        limit = data.get("requestLimit", 0)
        logger.info(f"Successful ScraperAPI requests {count} / {limit}")
        if limit and count >= limit:
            logger.warning("ScraperAPI account limit reached.")
        return True

    def _build_session(self) -> AsyncSession:
        self.identity = SessionIdentity.random()
        kwargs = {
            "impersonate": self.identity.impersonate,
            "headers": self.identity.headers(),
            "timeout": self.timeout,
        }
        proxies = self.path.proxies()
        if proxies:
            kwargs["proxies"] = proxies
        if not self.path.verify_ssl:
            kwargs["verify"] = False

        logger.debug(
            f"New session ({self.identity.impersonate}, {self.path})"
        )
        return AsyncSession(**kwargs)

    async def _replace_session(self) -> AsyncSession:
        old = self._session
        self._session = self._build_session()
        if old is not None:
            await old.close()
        return self._session

    def client(self) -> AsyncSession:
        """Current session; a default one is built on first use"""
        if self._session is None:
            self._session = self._build_session()
        return self._session

    async def rotate(self) -> AsyncSession:
        """Discard the session and rebuild it on the same path with a new identity"""
        self.rotations += 1
        return await self._replace_session()

    async def get_next_client(
        self, num_tries: Optional[int] = None
    ) -> Tuple[AsyncSession, float]:
        """
        Rotation used by the retry loop.

        Raises:
            NoMoreSessionsError: if the rotation budget is spent
        """
        if num_tries:
            logger.info(f"Try #{num_tries} failed. Switching session.")
        if self.max_rotations is not None and self.rotations >= self.max_rotations:
            raise NoMoreSessionsError(
                f"Rotation budget of {self.max_rotations} spent for {self.path}"
            )
        session = await self.rotate()
        return session, self.timeout

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
