"""
OAuth Bootstrap: obtain, verify and refresh vendor OAuth tokens for API testing.
"""

__version__ = "0.1.0"
