"""
Timed Auction Engine
"""
__version__ = "1.0.0"
