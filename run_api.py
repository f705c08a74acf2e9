#!/usr/bin/env python3
"""
Start the FastAPI server for the curation dashboard
Run this from the project root directory
"""

import uvicorn

from api.config import settings

if __name__ == "__main__":
    settings.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True,
        reload_dirs=["api", "ecod_pg", "lib"],
    )
