#!/usr/bin/env python3
"""
Quick launcher for the PNGTuber overlay.

Usage:
    python run_overlay.py              # Overlay server
    python run_overlay.py --obs        # Read the mic level from OBS
    python run_overlay.py --help       # Show all options
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pngtuber.__main__ import main

if __name__ == "__main__":
    main()
