"""
DEADSWITCH

Dead man's switch monitoring: services ping, silence raises alerts.
"""

__version__ = "0.1.0"
