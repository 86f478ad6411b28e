"""
schema-spine - keep views, functions and one-time migrations in line with code.
"""

__version__ = "0.1.0"

from schemaspine.core import *  # noqa
