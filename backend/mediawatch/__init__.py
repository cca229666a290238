"""
MediaWatch — watch a media index and dispatch new items exactly once.
"""

__version__ = "0.1.0"
