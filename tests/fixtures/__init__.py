# tests/fixtures/__init__.py
"""Shared builders for b2ctrace tests.

Available modules:
- clips: raw clip, recorder-record and log builders
- steps: TraceStep and step-node factories
"""
