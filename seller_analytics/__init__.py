"""
Seller Profit Analytics

Cost attribution and profit reporting for multi-marketplace sellers.
"""

__version__ = "1.0.0"
