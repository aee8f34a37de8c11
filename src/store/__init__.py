"""Storage and engine layer.

This module persists temporary copy records and source descriptors,
moves staged files, and talks to the query engine.
"""
