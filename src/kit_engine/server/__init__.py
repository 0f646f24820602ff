"""FastAPI server adapter for the kit engine.

Design intent:
- Keep lifecycle and session logic in `kit_engine.kits.*`
- Keep server-specific concerns (routing, CORS, run tracking) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from kit_engine.server.app import create_app
