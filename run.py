#!/usr/bin/env python3
"""
Bank Ledger Entry Point

Starts the FastAPI server with the ledger engine. Host, port, rates and
seed accounts come from LEDGER_* environment variables.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from bank_ledger.api import run_server


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Bank Ledger...")
