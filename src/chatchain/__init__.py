"""
Single-conversation chat service over a content-addressed message store.
"""

__version__ = "0.1.0"
