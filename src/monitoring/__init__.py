# src/monitoring/__init__.py

from .metrics import MaintenanceMetrics

__all__ = [
    'MaintenanceMetrics'
]
