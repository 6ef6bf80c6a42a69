#!/usr/bin/env python3
"""
Life Banking Engine Entry Point

Starts the FastAPI server for the banking simulation.
"""

import sys

from life_banking.api import run_server
from life_banking.config import get_config


if __name__ == "__main__":
    settings = get_config()
    print("Starting Life Banking Engine...")
    print(f"API available at: http://localhost:{settings.api_port}")
    print(f"Documentation at: http://localhost:{settings.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Life Banking Engine...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
