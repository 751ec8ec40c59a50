#!/usr/bin/env python
"""
Hanvas - Main Entry Point
=========================
Run the hand drawing application from a source checkout.
"""

import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

from hanvas.ui import main

if __name__ == "__main__":
    main()
