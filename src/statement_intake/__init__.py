"""
Bank statement intake → Bank matching → Cycle resolution → Vouching

A deterministic, testable pipeline that takes batches of bank statement
files, matches each one to a known bank account, extracts period and balance
data, files the statements into monthly accounting cycles and tracks
per-company sign-off.
"""

__version__ = "0.1.0"
