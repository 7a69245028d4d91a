"""
Utilities for VibeSnap: logging, errors, configuration and input parsing.
"""
