"""
Prospect Dashboard: Entry Point
===============================

Run: python main.py [--output index.html] [--metrics-json metrics.json]
"""

import sys

from prospect_dashboard.update_dashboard import main

if __name__ == "__main__":
    sys.exit(main())
