#!/usr/bin/env python3
"""
Convenience shim to run xseed from a source checkout.
Usage: python xseed.py [--config PATH] [--dry-run] CLIENT...
"""

from xseed.cli import main


if __name__ == "__main__":
    main()
