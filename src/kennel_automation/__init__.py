"""Kennel Automation.

Workflow automation for boarding and daycare facilities:
- workflow definitions loaded from the facility's workflow records
- event-triggered enrollments with gates, actions and delays
- a CLI and a REST server over the engine
"""

__version__ = "0.1.0"

from kennel_automation.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
