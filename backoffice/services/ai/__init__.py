"""
AI reply generation - providers and the fallback-aware service.
"""

from backoffice.services.ai.providers import AIProviderError, AIProviderType
from backoffice.services.ai.service import AIService, select_default_provider

__all__ = ["AIProviderError", "AIProviderType", "AIService", "select_default_provider"]
