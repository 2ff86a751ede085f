"""
AI Bookmarks: turns a Twitter bookmarks export into curated AI bookmarks.
"""

__version__ = '0.1.0'
