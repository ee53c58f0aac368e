"""
Records Kernel

A record-tracking back office for incoming documents with:
- One generic lifecycle engine for every record type
- Append-only remarks history
- Atomic, human-readable tracking IDs
- Hashed credentials and session tokens
"""

__version__ = "0.1.0"
