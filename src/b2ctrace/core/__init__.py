# src/b2ctrace/core/__init__.py
"""Core infrastructure: configuration, logging and recorder vocabulary."""
