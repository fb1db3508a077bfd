#!/usr/bin/env python
"""
Gesture+Galaxy - Main Entry Point
=================================
Run the gesture-driven particle display.
"""

import sys
import os
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent / ".env")

# Allow running from a checkout without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from gesture_galaxy.ui import main

if __name__ == "__main__":
    main()
