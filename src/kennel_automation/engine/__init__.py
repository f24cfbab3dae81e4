"""Workflow automation engine for the boarding facility.

Provides:
- Settings loaded from .env
- Structured logging
- A small CLI surface
- Workflow enrollment, execution and resumption
"""
