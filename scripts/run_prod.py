#!/usr/bin/env python3
"""
Production server runner for the AskDB API.

Starts uvicorn with multiple workers, no reload and no server/date headers.
Each worker owns its own MongoDB connection pool.
"""

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
    print("  Ensure environment variables are set via your deployment system")

# Import and run the FastAPI app
if __name__ == "__main__":
    import uvicorn
    from askdb.config import get_settings

    settings = get_settings()
    server_config = settings.server

    workers = max(server_config.workers, 2)
    pool_per_worker = settings.database.connection_pool_max_size

    production_config = {
        "app": server_config.app_module,
        "host": server_config.host,
        "port": server_config.port,
        "workers": workers,
        "reload": False,
        "log_config": None,  # Use our structured logging
        "access_log": False,  # We handle access logging via middleware
        "server_header": False,
        "date_header": False,
    }

    print("🚀 Starting AskDB API production server...")
    print(f"🌐 Listening: {server_config.host}:{server_config.port}")
    print(f"👥 Workers: {workers} (up to {workers * pool_per_worker} MongoDB connections)")
    print(f"🔍 Health Check: http://{server_config.host}:{server_config.port}/health")
    print()

    uvicorn.run(**production_config)
