#!/usr/bin/env python3
"""swarmctl - control client for the swarmfs daemon."""

from __future__ import annotations

from swarmctl.cli.main import main

if __name__ == "__main__":
    main()
