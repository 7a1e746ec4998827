"""
Core modules for AI Call Monitor.

This package contains target matching, response metadata extraction,
token usage and pricing.
"""
