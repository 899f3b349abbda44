"""
FastAPI transport adapters.

This module contains adapters for converting extraction output into
FastAPI/Starlette specific types.
"""

from __future__ import annotations
