"""
Anomaly Detection Package

Flags duplicates, orphaned transactions and invoices, VAT inconsistencies
and unusual amounts in a tenant's records.
"""

from .detector import (
    AnomalyDetector,
)
from .models import (
    AnomalyDetectionResult,
    AnomalySeverity,
    AnomalyStatus,
    AnomalyType,
    DetectedAnomaly,
)

__all__ = [
    "AnomalyDetectionResult",
    "AnomalyDetector",
    "AnomalySeverity",
    "AnomalyStatus",
    "AnomalyType",
    "DetectedAnomaly",
]
