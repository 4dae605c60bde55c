"""
corekeeper — keep the mihomo core installed, current and running.
"""

__version__ = "0.1.0"
