#!/usr/bin/env python3
"""
WalletQueue package main entry point.

Allows running the package directly with: python -m walletqueue
"""

from .cli import main

if __name__ == "__main__":
    main()
