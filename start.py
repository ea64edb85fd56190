#!/usr/bin/env python3
"""
Start script - handles PORT environment variable
"""

if __name__ == "__main__":
    # Import and run uvicorn programmatically
    import uvicorn

    from core.config import settings

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower()
    )
