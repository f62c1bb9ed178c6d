#!/usr/bin/env python3
"""Loop Keeper - Run the control API.

Starts the Flask control API and the monitors of every session marked
autostart in config.yaml.

Usage:
    python run.py
    # Or: python -m loopkeeper.app

The API will be available at http://localhost:5050/api

To keep a single session's log without the API, use:
    python monitor.py SESSION
"""

from loopkeeper.app import main

if __name__ == "__main__":
    main()
