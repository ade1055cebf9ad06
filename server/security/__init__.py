"""Security package for the chat API."""

from .sanitizer import PromptSanitizer, UnsafeInputError, SUSPICIOUS_PATTERNS

__all__ = [
    "PromptSanitizer",
    "UnsafeInputError",
    "SUSPICIOUS_PATTERNS"
]
