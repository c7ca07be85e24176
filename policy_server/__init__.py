"""
Policy Search Server

Natural-language search over policy documents with model fallback,
response normalization, and session / API key access.
"""

__version__ = "1.0.0"
