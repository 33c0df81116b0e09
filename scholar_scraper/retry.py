"""Retry policy: abuse classification, jitter and 403 cooldowns"""

import random
from dataclasses import dataclass
from typing import Tuple

from curl_cffi import CurlError
from curl_cffi.requests.exceptions import Timeout as CurlTimeout

from .config import (
    CAPTCHA_MARKER_IDS,
    COOLDOWN_GROWTH,
    COOLDOWN_MAX_SCALE,
    COOLDOWN_RANGE,
    DOS_MARKER_CLASSES,
    JITTER_RANGE,
)
from .models import AbuseSignal

CURLE_OPERATION_TIMEDOUT = 28


def classify_response(text: str) -> AbuseSignal:
    """Classify a body by the abuse markers embedded in it.

    The DOS-prevention marker wins over the CAPTCHA markers: a page carrying
    both is a hard block.
    """
    if not text:
        return AbuseSignal.CLEAN

    for cls in DOS_MARKER_CLASSES:
        if f'class="{cls}"' in text:
            return AbuseSignal.HARD_BLOCK

    for marker_id in CAPTCHA_MARKER_IDS:
        if f'id="{marker_id}"' in text:
            return AbuseSignal.SOFT_BLOCK

    return AbuseSignal.CLEAN


def is_timeout(error: BaseException) -> bool:
    """True for transport errors caused by the per-attempt timeout"""
    if isinstance(error, (TimeoutError, CurlTimeout)):
        return True
    if isinstance(error, CurlError):
        return getattr(error, "code", None) == CURLE_OPERATION_TIMEDOUT
    return False


def jitter_delay(jitter_range: Tuple[float, float] = JITTER_RANGE) -> float:
    """Randomized pre-request delay in seconds"""
    low, high = jitter_range
    return random.uniform(low, high)


@dataclass(frozen=True)
class CooldownPolicy:
    """
    Wait applied before rotating after a repeated 403.

    The n-th consecutive block draws from ``base_range`` scaled by
    ``1 + growth * (n - 2)``, capped at ``max_scale``. The first block never
    waits (it rotates immediately), so n starts at 2 here.
    """

    base_range: Tuple[float, float] = COOLDOWN_RANGE
    growth: float = COOLDOWN_GROWTH
    max_scale: float = COOLDOWN_MAX_SCALE

    def scale(self, consecutive_blocks: int) -> float:
        extra = max(0, consecutive_blocks - 2)
        return min(self.max_scale, 1.0 + self.growth * extra)

    def delay(self, consecutive_blocks: int) -> float:
        low, high = self.base_range
        factor = self.scale(consecutive_blocks)
        return random.uniform(low * factor, high * factor)
