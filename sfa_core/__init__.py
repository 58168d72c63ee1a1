"""
SFA sync core: offline-aware dashboard and catalog cache for the
sales-force-automation client.
"""

__version__ = "0.1.0"
