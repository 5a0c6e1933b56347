"""
trading_orders - order construction, validation and lifecycle for Tastytrade.
"""

__version__ = "0.1.0"
