"""
FloodGuard core: local-first sync engine for flood SOS requests and rescuers.
"""

__version__ = "0.1.0"
