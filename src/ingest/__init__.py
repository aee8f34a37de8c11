"""Temporary load pipeline.

This module extracts source rows into staging files, normalizes the time
column, and drives the load through submission and completion polling.
"""
