"""
slotbook - availability and booking engine for provider services.
"""

__version__ = "0.1.0"
