"""
Infrastructure layer for external integrations.

This module contains clients for external services: the MongoDB
deployment and the OpenRouter LLM provider.
"""

from .database_client import DatabaseClient
from .llm_client import LLMClient

__all__ = ["DatabaseClient", "LLMClient"]
