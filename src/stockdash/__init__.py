"""
StockDash: a paper-trading stock dashboard.

Users submit buy and sell requests against a virtual cash balance; admins
approve or reject them, and approval settles the trade against the user's
current account.
"""

__version__ = "0.1.0"
