#!/usr/bin/env python3
"""Command-line entry point for hanja reading lookups."""

from hanja_search.app.app import main

if __name__ == "__main__":
    raise SystemExit(main())
