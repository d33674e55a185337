#!/usr/bin/env python3
"""
Development server runner for the AskDB API.

This script loads .env, checks the required settings and starts the
FastAPI development server with hot reloading.
"""

import os
import sys
from pathlib import Path

# Add the src directory to the Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✓ Loaded environment variables from {env_file}")
else:
    print(f"⚠ No .env file found at {env_file}")
    print("  Copy .env-template to .env and fill in the values")

REQUIRED_ENV_VARS = ("DATABASE__MONGODB_URI", "LLM__OPENROUTER_API_KEY")

# Import and run the FastAPI app
if __name__ == "__main__":
    missing = [name for name in REQUIRED_ENV_VARS if not os.environ.get(name)]
    if missing:
        print(f"✗ Missing required environment variables: {', '.join(missing)}")
        sys.exit(1)

    import uvicorn
    from askdb.config import get_settings

    settings = get_settings()
    server_config = settings.server

    print("🚀 Starting AskDB API development server...")
    print(f"📊 API Documentation: http://{server_config.host}:{server_config.port}/docs")
    print(f"🔍 Health Check: http://{server_config.host}:{server_config.port}/health")
    print(f"🗂  Sample Schema: http://{server_config.host}:{server_config.port}/api/schema")
    print(f"🤖 Model: {settings.llm.default_model} (max retries per question: {settings.query.max_retries})")
    print()

    uvicorn.run(
        server_config.app_module,
        host=server_config.host,
        port=server_config.port,
        reload=server_config.reload,
        workers=server_config.workers,
        reload_dirs=[str(src_path)],
        log_config=None,  # Use our structured logging
        access_log=False  # We handle access logging via middleware
    )
