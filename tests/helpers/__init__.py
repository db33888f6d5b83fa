"""
Test helper utilities for edfplus testing.

This module provides reusable utilities for:
- Building synthetic headers and signals
- Writing small EDF+ files in memory
- Simulating non-seekable and failing streams
"""
