"""Short code generation and shortened URL creation."""

from __future__ import annotations

import logging
import random
import re
import string
from typing import Awaitable, Callable, Optional

from linkvault.config import settings
from linkvault import metrics

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_letters + string.digits
SLUG_RE = re.compile(r"^[A-Za-z0-9_-]{3,64}$")

ExistsCheck = Callable[[str], Awaitable[bool]]


class ShortCodeExhaustedError(RuntimeError):
    """Raised when every generated code collided with an existing one."""

    def __init__(self, attempts: int):
        super().__init__(f"Unable to generate unique short code after {attempts} attempts")
        self.attempts = attempts


class ShortCodeTakenError(ValueError):
    """Raised when a requested custom slug is already in use."""


def generate_short_code(length: int = 8, rng: Optional[random.Random] = None) -> str:
    """Random alphanumeric code; uniqueness, not secrecy, is the goal."""
    if length < 1:
        raise ValueError("Short code length must be positive")
    rng = rng or random
    return "".join(rng.choices(ALPHABET, k=length))


class URLShortener:
    """
    Build shortened URLs of the form <base>/l/<code>.

    exists is the external uniqueness check for a code.
    """

    def __init__(
        self,
        exists: ExistsCheck,
        base_url: Optional[str] = None,
        code_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.exists = exists
        self.base_url = (base_url or settings.short_url_base).rstrip("/")
        self.code_length = code_length or settings.short_code_length
        self.max_attempts = max_attempts or settings.short_code_max_attempts
        self.rng = rng

    def build_url(self, code: str, custom_domain: Optional[str] = None) -> str:
        base = (custom_domain or self.base_url).rstrip("/")
        return f"{base}/l/{code}"

    async def generate_unique_code(self) -> str:
        """
        Generate a code unused in the inventory.

        Raises:
            ShortCodeExhaustedError: after max_attempts collisions
        """
        for attempt in range(1, self.max_attempts + 1):
            code = generate_short_code(self.code_length, self.rng)
            if not await self.exists(code):
                return code
            metrics.record_short_code_collision()
            logger.debug(f"Short code collision (attempt {attempt}/{self.max_attempts})")

        logger.error(f"Short code space exhausted after {self.max_attempts} attempts")
        raise ShortCodeExhaustedError(self.max_attempts)

    async def create_short_url(
        self,
        original_url: str,
        custom_domain: Optional[str] = None,
        custom_slug: Optional[str] = None,
    ) -> str:
        """
        Create a shortened URL for original_url.

        Raises:
            ValueError: custom_slug has invalid characters or length
            ShortCodeTakenError: custom_slug already exists
            ShortCodeExhaustedError: no unique random code found
        """
        if custom_slug:
            if not SLUG_RE.match(custom_slug):
                raise ValueError(f"Invalid custom slug: {custom_slug!r}")
            if await self.exists(custom_slug):
                raise ShortCodeTakenError(f"Slug already in use: {custom_slug}")
            code = custom_slug
        else:
            code = await self.generate_unique_code()

        short_url = self.build_url(code, custom_domain)
        metrics.record_short_url_created()
        logger.debug(f"Shortened {original_url} -> {short_url}")
        return short_url


def short_code_from_url(short_url: str) -> Optional[str]:
    """Return the code part of a <base>/l/<code> URL."""
    if not short_url or "/l/" not in short_url:
        return None
    return short_url.rsplit("/l/", 1)[1].strip("/") or None
