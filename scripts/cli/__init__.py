"""
Records office CLI -- command line front end for the records desk.

File, correct, reject and time out records, and print the dashboard,
period reports and receiving log.

Entry point: python -m scripts.cli.main
"""

from scripts.cli.main import main

__all__ = ["main"]
