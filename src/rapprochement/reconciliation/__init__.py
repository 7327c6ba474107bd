"""
Reconciliation Package

Tenant-level reconciliation: the auto-match orchestrator, persisted records,
storage, user review operations and progress statistics.
"""

from .datastore import (
    JsonReconciliationStore,
    ReconciliationStore,
)
from .orchestrator import (
    AutoMatchOrchestrator,
    AutoMatchResult,
)
from .records import (
    AnomalyRecord,
    AutomationAction,
    AutomationLogEntry,
    MatchStatus,
    RapprochementRecord,
)
from .review import (
    confirm_match,
    create_manual_match,
    reject_match,
    update_anomaly_status,
)
from .stats import (
    compute_reconciliation_stats,
    summarize_anomalies,
)

__all__ = [
    # Persisted records
    "AnomalyRecord",
    # Orchestration
    "AutoMatchOrchestrator",
    "AutoMatchResult",
    "AutomationAction",
    "AutomationLogEntry",
    # Storage
    "JsonReconciliationStore",
    "MatchStatus",
    "RapprochementRecord",
    "ReconciliationStore",
    # Review operations
    "compute_reconciliation_stats",
    "confirm_match",
    "create_manual_match",
    "reject_match",
    "summarize_anomalies",
    "update_anomaly_status",
]
