#!/usr/bin/env python3
"""
Anomaly Domain Models

Irregularities flagged on a tenant's transactions and invoices, independent
of any particular pairing decision.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.money import Money, cents_or_none, money_or_none


class AnomalyType(Enum):
    """Kinds of anomaly the detector emits."""

    DOUBLON_TRANSACTION = "doublon_transaction"
    DOUBLON_FACTURE = "doublon_facture"
    TRANSACTION_SANS_FACTURE = "transaction_sans_facture"
    FACTURE_SANS_TRANSACTION = "facture_sans_transaction"
    ECART_TVA = "ecart_tva"
    MONTANT_ELEVE = "montant_eleve"


class AnomalySeverity(Enum):
    """Severity levels, most urgent first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank: critical=0, warning=1, info=2."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AnomalySeverity.CRITICAL: 0,
    AnomalySeverity.WARNING: 1,
    AnomalySeverity.INFO: 2,
}


class AnomalyStatus(Enum):
    """Lifecycle of a persisted anomaly."""

    OUVERTE = "ouverte"
    RESOLUE = "resolue"
    IGNOREE = "ignoree"


@dataclass(frozen=True)
class DetectedAnomaly:
    """
    One flagged irregularity.

    Carries ids and amounts so a report can render it without re-querying.
    """

    type: AnomalyType
    severite: AnomalySeverity
    description: str

    # Optional fields
    transaction_id: str | None = None
    facture_id: str | None = None
    montant: Money | None = None
    montant_attendu: Money | None = None
    ecart: Money | None = None

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        """(type, transaction_id, facture_id) with blanks for missing ids."""
        return (self.type.value, self.transaction_id or "", self.facture_id or "")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DetectedAnomaly":
        """Create from persisted dict (amounts in cents)."""
        return cls(
            type=AnomalyType(data["type"]),
            severite=AnomalySeverity(data["severite"]),
            description=data.get("description", ""),
            transaction_id=data.get("transaction_id"),
            facture_id=data.get("facture_id"),
            montant=money_or_none(data.get("montant")),
            montant_attendu=money_or_none(data.get("montant_attendu")),
            ecart=money_or_none(data.get("ecart")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "type": self.type.value,
            "severite": self.severite.value,
            "description": self.description,
            "transaction_id": self.transaction_id,
            "facture_id": self.facture_id,
            "montant": cents_or_none(self.montant),
            "montant_attendu": cents_or_none(self.montant_attendu),
            "ecart": cents_or_none(self.ecart),
        }


@dataclass
class AnomalyDetectionResult:
    """Deduplicated anomalies sorted by severity, with per-severity counts."""

    anomalies: list[DetectedAnomaly] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        """Counts: total, critical, warning, info."""
        counts = {"total": len(self.anomalies)}
        for severity in AnomalySeverity:
            counts[severity.value] = sum(1 for a in self.anomalies if a.severite == severity)
        return counts

    def of_type(self, anomaly_type: AnomalyType) -> list[DetectedAnomaly]:
        """Anomalies of one type, in result order."""
        return [a for a in self.anomalies if a.type == anomaly_type]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "anomalies": [a.to_dict() for a in self.anomalies],
            "stats": self.stats,
        }
