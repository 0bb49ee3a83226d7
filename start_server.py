#!/usr/bin/env python3
"""
Startup script for the Task Tracker backend
This script starts the FastAPI server with proper configuration
"""

import uvicorn

from tasktrack.config import settings


def main():
    server = settings.SERVER

    print("Starting Task Tracker Backend Server...")
    print(f"Host: {server['host']}")
    print(f"Port: {server['port']}")
    print(f"Reload: {server['reload']}")
    print("=" * 50)

    # Start the server
    uvicorn.run(
        "main:app",
        host=server['host'],
        port=server['port'],
        reload=server['reload'],
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
