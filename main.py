#!/usr/bin/env python3
"""
Main entry point for the swisstax CLI application.
"""

from swisstax.cli import app

if __name__ == "__main__":
    app()
