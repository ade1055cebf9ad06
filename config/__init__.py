"""Configuration module for the helpdesk agents.

Provides settings for the language model, knowledge base indexing and logging.
"""

from .settings import (
    Settings,
    EmbeddingProviderType,
    DEFAULT_KNOWLEDGE_BASE_URL,
    load_settings
)

__all__ = [
    'Settings',
    'EmbeddingProviderType',
    'DEFAULT_KNOWLEDGE_BASE_URL',
    'load_settings'
]
