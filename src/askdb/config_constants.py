from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class OPENROUTER_LLM_MODELS(str, Enum):
    # OpenAI models
    GPT_4O = "openai/gpt-4o"
    GPT_4O_MINI = "openai/gpt-4o-mini"
    GPT_4 = "openai/gpt-4"

    # Anthropic Claude models
    ANTHROPIC_SONNET_45 = "anthropic/claude-4.5-sonnet"
    ANTHROPIC_HAIKU_45 = "anthropic/claude-haiku-4.5"

    # Google Gemini models
    GEMINI_3_FLASH_PREVIEW = "google/gemini-3-flash-preview"

OPEN_ROUTER_API_URL = "https://openrouter.ai/api/v1"

# -------------------------
# Connection descriptor constants
# -------------------------

# Connection descriptor sent by clients that want the built-in demo data
# instead of a live, user-supplied MongoDB deployment
SAMPLE_CONNECTION_DESCRIPTOR = "sample"

# Logical database name used by GET /api/schema
SAMPLE_DATABASE_NAME = "sample_db"
