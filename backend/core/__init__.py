"""Core backend infrastructure for the Player Tracker backend.

This package contains configuration, logging, database, error, security and
dependency helpers used by the FastAPI application entrypoint.
"""
