"""FastAPI server adapter for kennel-automation.

This module exposes a REST API over the automation engine.

Design intent:
- Keep workflow logic in `kennel_automation.engine.*`
- Keep server-specific concerns (routing, CORS, background resumption) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from kennel_automation.server.app import create_app
