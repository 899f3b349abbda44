"""
Transport adapters package.

This package contains adapters that deliver extraction sessions over a
transport, such as Server-Sent Events and FastAPI responses.
"""

from __future__ import annotations
