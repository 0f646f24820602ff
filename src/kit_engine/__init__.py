"""Kit Engine.

Runs five-stage decision-support kits (intake, analysis, document, guidance,
complete) per user session, with:
- configuration loaded from `.env`
- structured logging
- a kit catalog for discovery and instantiation
"""

__version__ = "0.1.0"

from kit_engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
