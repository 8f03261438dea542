"""
CLI runner module.

Provides commands:
- init-config: Write a default config file
- ingest: Process a batch of statement files
- cycles: List statement cycles
- status: Show intake statistics
- vouch: Vouch / un-vouch a company's statements
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
