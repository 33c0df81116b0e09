"""Retrieval engine: fetches Scholar pages through rotating sessions"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from bs4 import BeautifulSoup
from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession
from loguru import logger

from .config import (
    BASE_URL,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    JITTER_RANGE,
    TIMEOUT_CEILING_FACTOR,
)
from .exceptions import (
    AbuseDetectedError,
    CaptchaRequiredError,
    ConfigurationError,
    NoMoreSessionsError,
    RetrievalExhaustedError,
)
from .models import AbuseSignal, ProxyMode, TargetClass
from .proxy_generator import ProxyGenerator
from .retry import CooldownPolicy, classify_response, is_timeout, jitter_delay


@dataclass
class RetrievalState:
    """Per-endpoint-family retry state"""

    base_timeout: float
    timeout: float = 0.0
    attempts: int = 0
    blocked_recently: bool = False
    consecutive_blocks: int = 0

    def __post_init__(self):
        if not self.timeout:
            self.timeout = self.base_timeout

    def reset(self, base_timeout: Optional[float] = None) -> None:
        """Restore the timeout and forget recent blocks (new path adopted)"""
        if base_timeout is not None:
            self.base_timeout = base_timeout
        self.timeout = self.base_timeout
        self.attempts = 0
        self.blocked_recently = False
        self.consecutive_blocks = 0

    def clear_blocks(self) -> None:
        self.blocked_recently = False
        self.consecutive_blocks = 0


class Navigator:
    """
    Turns a logical Scholar request into a fetched document.

    Features:
    - Two endpoint buckets (premium content / secondary listings), each with
      its own provider and retry state
    - Randomized pre-request jitter
    - Timeout escalation up to 3x the base timeout
    - Session rotation on 403, with a growing cooldown for repeated blocks
    - Hard-block (DOS page) and CAPTCHA detection, never retried
    - Secondary requests fall back once to the premium bucket

    Not safe for concurrent use across tasks: rotation triggered by one fetch
    replaces the session seen by the others. Use one Navigator per task when
    isolation matters.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_RETRIES,
        jitter_range: Tuple[float, float] = JITTER_RANGE,
        cooldown: Optional[CooldownPolicy] = None,
        base_url: str = BASE_URL,
    ):
        """
        Initialize the navigator.

        Args:
            timeout: Base per-attempt timeout in seconds
            max_retries: Attempts per bucket before giving up
            jitter_range: Bounds of the pre-request delay in seconds
            cooldown: Wait policy for repeated 403 responses
            base_url: Scheme and host prefixed to relative requests
        """
        if max_retries < 0:
            raise ConfigurationError("num_retries must not be negative")
        if timeout < 0:
            logger.debug(f"Ignoring negative timeout {timeout}, using {DEFAULT_TIMEOUT}")
            timeout = DEFAULT_TIMEOUT
        self.timeout = timeout
        self.max_retries = max_retries
        self.jitter_range = jitter_range
        self.cooldown = cooldown or CooldownPolicy()
        self.base_url = base_url.rstrip("/")

        self.pm1 = ProxyGenerator(timeout=timeout)
        self.pm2 = ProxyGenerator(timeout=timeout)
        self._states: Dict[TargetClass, RetrievalState] = {
            target: RetrievalState(base_timeout=timeout) for target in TargetClass
        }

        self.publib = ""
        self.total_attempts = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.pm1.aclose()
        await self.pm2.aclose()

    def set_timeout(self, timeout: float) -> None:
        """Set the base timeout in seconds; negative values are ignored"""
        if timeout < 0:
            logger.debug(f"Ignoring negative timeout {timeout}")
            return
        self.timeout = timeout
        for state in self._states.values():
            state.reset(base_timeout=timeout)

    def set_retries(self, num_retries: int) -> None:
        if num_retries < 0:
            raise ConfigurationError("num_retries must not be negative")
        self.max_retries = num_retries

    async def use_proxy(
        self, pg1: Optional[ProxyGenerator], pg2: Optional[ProxyGenerator] = None
    ) -> None:
        """
        Adopt providers for the premium (pg1) and secondary (pg2) buckets.

        Without pg2 the secondary bucket goes back to a direct connection.
        Replaced providers are closed.
        """
        if pg1 is not None and pg1 is not self.pm1:
            old, self.pm1 = self.pm1, pg1
            await old.aclose()
        new_pm2 = pg2 if pg2 is not None else ProxyGenerator(timeout=self.timeout)
        if new_pm2 is not self.pm2:
            old, self.pm2 = self.pm2, new_pm2
            await old.aclose()

        if self.pm1.proxy_mode is ProxyMode.SCRAPERAPI:
            self.set_timeout(self.pm1.timeout)
        else:
            for state in self._states.values():
                state.reset()

    def provider(self, target: TargetClass) -> ProxyGenerator:
        return self.pm1 if target is TargetClass.PREMIUM else self.pm2

    def state(self, target: TargetClass) -> RetrievalState:
        return self._states[target]

    @staticmethod
    def target_class(pagerequest: str, premium: bool = False) -> TargetClass:
        """Listing pages (/citations?) use the secondary bucket unless forced"""
        if "citations?" in pagerequest and not premium:
            return TargetClass.SECONDARY
        return TargetClass.PREMIUM

    def _absolute(self, pagerequest: str) -> str:
        if pagerequest.startswith(("http://", "https://")):
            return pagerequest
        if not pagerequest.startswith("/"):
            pagerequest = f"/{pagerequest}"
        return f"{self.base_url}{pagerequest}"

    async def _pause(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def _handle_forbidden(
        self, pm: ProxyGenerator, state: RetrievalState
    ) -> AsyncSession:
        """403: rotate right away the first time, cool down on repeats"""
        state.consecutive_blocks += 1
        if not state.blocked_recently:
            logger.warning("🚫 Got an access denied error (403). Retrying immediately with another session.")
        else:
            wait_time = self.cooldown.delay(state.consecutive_blocks)
            logger.warning(
                f"🚫 Got another 403 ({state.consecutive_blocks} in a row). "
                f"Will retry after {wait_time:.2f} seconds"
            )
            await self._pause(wait_time)
        session = await pm.rotate()
        state.blocked_recently = True
        return session

    async def get_page(self, pagerequest: str, premium: bool = False) -> str:
        """
        Fetch a page body, retrying and rotating sessions as needed.

        Args:
            pagerequest: Relative path plus query, or an absolute URL
            premium: Force the premium bucket

        Returns:
            The response body

        Raises:
            AbuseDetectedError: DOS-prevention page served (no retry)
            CaptchaRequiredError: CAPTCHA served (no retry)
            RetrievalExhaustedError: retry budget spent on every bucket
        """
        target = self.target_class(pagerequest, premium)
        pm = self.provider(target)
        state = self._states[target]
        url = self._absolute(pagerequest)

        session = pm.client()
        state.attempts = 0

        while state.attempts < self.max_retries:
            await self._pause(jitter_delay(self.jitter_range))
            self.total_attempts += 1

            try:
                response = await session.get(url, timeout=state.timeout)
            except (CurlError, OSError) as e:
                ceiling = TIMEOUT_CEILING_FACTOR * self.timeout
                if is_timeout(e) and state.timeout < ceiling:
                    state.timeout = min(state.timeout + self.timeout, ceiling)
                    logger.warning(
                        f"⏱️ Timeout on {target.value} bucket. Increasing timeout to "
                        f"{state.timeout:.1f}s and retrying within same session."
                    )
                    continue
                logger.warning(f"⚠️ Exception while fetching page: {e}")
            else:
                text = response.text
                signal = classify_response(text)

                if signal is AbuseSignal.HARD_BLOCK:
                    logger.error(f"🚨 DOS-prevention page served for {url}")
                    raise AbuseDetectedError()

                if signal is AbuseSignal.SOFT_BLOCK:
                    logger.error(f"🤖 Got a captcha request for {url}")
                    raise CaptchaRequiredError()

                if response.status_code == 200:
                    state.clear_blocks()
                    logger.debug(f"← 200 {url} ({len(text)} chars)")
                    return text

                if response.status_code == 404:
                    logger.warning("Got a 404 error. Attempting with same session")
                    state.attempts += 1
                    continue

                if response.status_code == 403:
                    session = await self._handle_forbidden(pm, state)
                    state.attempts += 1
                    continue

                logger.warning(f"⚠️ Unexpected HTTP {response.status_code} for {url}")

            state.attempts += 1
            if state.attempts >= self.max_retries:
                break
            try:
                session, provider_timeout = await pm.get_next_client(state.attempts)
            except NoMoreSessionsError as e:
                logger.error(f"No other connections possible: {e}")
                break
            state.timeout = max(state.timeout, provider_timeout)

        if target is TargetClass.SECONDARY:
            logger.warning("Secondary session exhausted. Falling back to the premium session.")
            return await self.get_page(pagerequest, premium=True)

        logger.error(f"❌ Failed to fetch {url} after {self.max_retries} tries")
        raise RetrievalExhaustedError()

    async def get_soup(self, url: str) -> BeautifulSoup:
        """Fetch ``url`` and parse it into a BeautifulSoup document"""
        html = await self.get_page(url)
        html = html.replace("\xa0", " ")
        soup = BeautifulSoup(html, "html.parser")

        glb = soup.find(id="gs_res_glb")
        self.publib = glb.get("data-sva", "") if glb is not None else ""
        return soup
