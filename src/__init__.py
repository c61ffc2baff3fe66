"""Top-level package for the CRM maintenance engine.

Everything is imported as `src.<package>` (src.core, src.config, src.utils,
src.monitoring, src.crm_maintenance).
"""

__all__ = []
