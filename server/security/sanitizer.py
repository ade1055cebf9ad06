"""Input pre-filter for chat messages.

Strips markup from user text and rejects messages that look like prompt
injection attempts before they reach the agents.
"""

import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

SUSPICIOUS_PATTERNS = [
    re.compile(pattern, re.IGNORECASE) for pattern in (
        r"ignore previous instructions",
        r"ignore all previous commands",
        r"disregard previous instructions",
        r"forget your instructions",
        r"you are now",
        r"system prompt",
        r"you're actually",
        r"you are actually",
        r"new role",
        r"new persona",
        r"new personality",
        r"new identity",
        r"</?system>",
        r"</?user>",
        r"</?assistant>",
        r"</?instructions>",
        r"</?prompt>",
    )
]

MAX_NEWLINES = 15
CONTROL_CHARACTERS = re.compile(r"[\u2000-\u200F\u2028-\u202F\u205F-\u206F\uFEFF]")
REPETITION = re.compile(r"(.{3,})\1{5,}")


class UnsafeInputError(ValueError):
    """The input was rejected by the safety checks."""


class PromptSanitizer:
    """Markup stripping and prompt-injection detection."""

    def sanitize(self, text: str) -> str:
        """Plain text with all markup removed."""
        if not text:
            return ""
        return BeautifulSoup(text, "html.parser").get_text().strip()

    def unusual_formatting(self, text: str):
        """Reason the text looks machine-crafted, or None."""
        if text.count("\n") > MAX_NEWLINES:
            return "Excessive newlines"
        if CONTROL_CHARACTERS.search(text):
            return "Unusual Unicode control characters"
        if REPETITION.search(text):
            return "Excessive repetition"
        return None

    def is_safe(self, text: str) -> bool:
        if not text:
            return True

        for pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(text):
                logger.warning(f"Potential prompt injection detected: {text[:100]}...")
                return False

        reason = self.unusual_formatting(text)
        if reason:
            logger.warning(f"Unusual formatting detected: {reason}")
            return False

        return True

    def process_user_input(self, text: str) -> str:
        """Sanitize and check; raises UnsafeInputError when rejected.

        Tag-shaped injection markers are checked on the raw text, since
        sanitizing would strip them.
        """
        if not self.is_safe(text):
            raise UnsafeInputError("Input contains potentially harmful content")

        sanitized = self.sanitize(text)
        if not self.is_safe(sanitized):
            raise UnsafeInputError("Input contains potentially harmful content")
        return sanitized
