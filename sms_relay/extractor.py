"""
Verification code extraction from free-form SMS text.

Two matchers are tried in order and the first hit wins:
- AnchoredCodeMatcher: a code labelled by a phrase such as "验证码" or "code"
- DigitRunMatcher: the last standalone run of 4-8 digits in the message

Only ASCII digits count. A run is always taken whole, so a 9-digit number
never yields an 8-digit code.
"""

import logging
import re
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 8

DEFAULT_ANCHORS = ("验证码", "verification code", "code")

# A maximal run of 4-8 ASCII digits
_CODE_RUN = rf"(?<![0-9])([0-9]{{{MIN_CODE_LENGTH},{MAX_CODE_LENGTH}}})(?![0-9])"


def _bounded_anchor(anchor: str) -> str:
    """
    Escape an anchor and keep ASCII words from matching inside longer words.

    "code" must not match in "postcode" or "codes". CJK anchors are left
    unbounded since CJK text has no spaces between words.
    """
    pattern = re.escape(anchor)
    if anchor[0].isascii() and anchor[0].isalpha():
        pattern = r"(?<![A-Za-z])" + pattern
    if anchor[-1].isascii() and anchor[-1].isalpha():
        pattern = pattern + r"(?![A-Za-z])"
    return pattern


class AnchoredCodeMatcher:
    """Finds a digit run that follows an anchor phrase, skipping any non-digits in between."""

    def __init__(self, anchors: Iterable[str] = DEFAULT_ANCHORS):
        anchors = [a for a in anchors if a]
        if not anchors:
            raise ValueError("at least one anchor phrase is required")
        # Longest first so "verification code" is preferred over "code"
        alternation = "|".join(_bounded_anchor(a) for a in sorted(anchors, key=len, reverse=True))
        self.pattern = re.compile(rf"(?:{alternation})[^0-9]*{_CODE_RUN}", re.IGNORECASE)

    def match(self, text: str) -> Optional[str]:
        found = self.pattern.search(text)
        return found.group(1) if found else None


class DigitRunMatcher:
    """Returns the last 4-8 digit run in reading order."""

    pattern = re.compile(_CODE_RUN)

    def match(self, text: str) -> Optional[str]:
        runs = self.pattern.findall(text)
        return runs[-1] if runs else None


class CodeExtractor:
    """
    Extracts a verification code from message text.

    Pure and deterministic: no I/O, no state beyond the compiled patterns,
    so a single instance can be shared across requests.
    """

    def __init__(self, anchors: Iterable[str] = DEFAULT_ANCHORS):
        self.matchers: Sequence = (AnchoredCodeMatcher(anchors), DigitRunMatcher())

    def extract(self, text: str) -> Optional[str]:
        """
        Return the verification code found in text, or None.

        Args:
            text: Raw message content

        Returns:
            A string of 4-8 ASCII digits, or None if no tier matched
        """
        for matcher in self.matchers:
            code = matcher.match(text)
            if code is not None:
                logger.debug(f"Code matched by {type(matcher).__name__}")
                return code
        return None


_default_extractor = CodeExtractor()


def extract_code(text: str) -> Optional[str]:
    """Extract a code using the default anchor phrases."""
    return _default_extractor.extract(text)
