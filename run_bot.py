#!/usr/bin/env python
"""
Run script for the pump.fun trading bot.

This script sets up the logging directory and runs one CLI command.
"""

import os
import sys
import asyncio
from pathlib import Path

# Ensure the 'pumpbot' package is importable from a source checkout
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

from pumpbot.main import main

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
