"""
Shared pytest configuration.

Settings require a MongoDB URI and an OpenRouter key. Unit tests never
contact either, so placeholders are provided when the environment has none.
Integration tests read the real values from the environment or .env.
"""

import os

os.environ.setdefault("DATABASE__MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("LLM__OPENROUTER_API_KEY", "test-openrouter-key")
