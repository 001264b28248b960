#!/usr/bin/env python3
"""
SQL Visualizer Startup Script
Run this to start the FastAPI backend server
"""
import uvicorn

from sql_visualizer.config import get_settings
from sql_visualizer.debug import DebugLogger, configure_logging

if __name__ == "__main__":
    settings = get_settings()
    if settings.debug_trace:
        DebugLogger.enable()
    configure_logging(settings.log_level)

    uvicorn.run(
        "sql_visualizer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,  # Auto-reload on code changes
        log_level=settings.log_level,
    )
