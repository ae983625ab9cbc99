"""
Abstract base class for CAPTCHA recognition engines
"""

from abc import ABC, abstractmethod
from typing import Optional
import re

CAPTCHA_LENGTH = 4
CAPTCHA_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")
_VALID_ANSWER = re.compile(rf"[A-Z0-9]{{{CAPTCHA_LENGTH}}}")


def normalize_answer(text: Optional[str]) -> str:
    """Upper-case and strip everything outside [A-Z0-9]."""
    if not text:
        return ""
    return _NON_ALPHANUMERIC.sub("", text.strip().upper())


def is_valid_answer(text: Optional[str]) -> bool:
    return bool(text) and _VALID_ANSWER.fullmatch(text) is not None


class CaptchaSolver(ABC):
    """
    Turns a CAPTCHA image into its best-effort text.

    Implementations return the normalized prediction, or None when nothing
    could be read. Transient service overload is raised as
    SolverOverloadedError; other engine failures as SolverError.
    """

    engine: str = "base"

    @abstractmethod
    async def solve(self, image: bytes) -> Optional[str]:
        """
        Recognize the characters in a CAPTCHA image.

        Args:
            image: PNG bytes of the CAPTCHA element

        Returns:
            Normalized prediction or None
        """
        pass

    async def close(self):
        """Release engine resources (HTTP clients, worker threads)."""
        pass
