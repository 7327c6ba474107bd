#!/usr/bin/env python3
"""
Persisted Reconciliation Records

Rows written by the orchestrator and the review operations: match records,
anomaly records and the automation audit log. Records are immutable; state
changes produce a new record via dataclasses.replace().
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..anomalies.models import AnomalySeverity, AnomalyStatus, AnomalyType, DetectedAnomaly
from ..core.money import Money
from ..matching.models import MatchSuggestion, MatchType


class MatchStatus(Enum):
    """Lifecycle of a persisted match."""

    SUGGESTION = "suggestion"
    VALIDE = "valide"
    REJETE = "rejete"


class AutomationAction(Enum):
    """Audit log action types."""

    AUTO_MATCH = "auto_match"
    MATCH_SUGGESTED = "match_suggested"


def new_record_id() -> str:
    """Generate a unique record id."""
    return str(uuid.uuid4())


def _timestamp(when: datetime | None) -> str:
    return (when or datetime.now()).isoformat(timespec="seconds")


@dataclass(frozen=True)
class RapprochementRecord:
    """
    One persisted (invoice, transaction) pairing.

    validated_by_user=False rows belong to the engine and are replaced on
    every run; user-validated rows (confirmed or rejected) are preserved.
    """

    id: str
    tenant_id: str
    facture_id: str
    transaction_id: str
    montant: Money
    type: MatchType
    statut: MatchStatus
    confidence_score: int
    created_at: str

    # Optional fields
    date_score: int = 0
    amount_score: int = 0
    description_score: int = 0
    supplier_score: int = 0
    validated_by_user: bool = False
    validated_at: str | None = None

    @property
    def pair(self) -> tuple[str, str]:
        """(facture_id, transaction_id)."""
        return (self.facture_id, self.transaction_id)

    @property
    def is_rejected(self) -> bool:
        """Check if the user rejected this pairing."""
        return self.statut == MatchStatus.REJETE

    @property
    def is_active(self) -> bool:
        """Check if this record still claims its invoice and transaction."""
        return not self.is_rejected

    @property
    def is_user_confirmed(self) -> bool:
        """Check if a user validated this pairing."""
        return self.validated_by_user and self.statut == MatchStatus.VALIDE

    @classmethod
    def from_suggestion(
        cls, tenant_id: str, suggestion: MatchSuggestion, when: datetime | None = None
    ) -> "RapprochementRecord":
        """
        Create an engine-owned record from a matcher proposal.

        Auto matches are stored pre-validated (statut valide) but remain
        replaceable until a user confirms them.
        """
        invoice = suggestion.facture
        montant = invoice.montant_ttc if invoice.montant_ttc is not None else suggestion.transaction.abs_amount
        is_auto = suggestion.type == MatchType.AUTO

        return cls(
            id=new_record_id(),
            tenant_id=tenant_id,
            facture_id=invoice.id,
            transaction_id=suggestion.transaction.id,
            montant=montant,
            type=suggestion.type,
            statut=MatchStatus.VALIDE if is_auto else MatchStatus.SUGGESTION,
            confidence_score=suggestion.confidence,
            date_score=suggestion.score.date,
            amount_score=suggestion.score.amount,
            description_score=suggestion.score.description,
            supplier_score=suggestion.score.supplier,
            validated_by_user=False,
            validated_at=_timestamp(when) if is_auto else None,
            created_at=_timestamp(when),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RapprochementRecord":
        """Create from persisted dict."""
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            facture_id=data["facture_id"],
            transaction_id=data["transaction_id"],
            montant=Money.from_cents(data.get("montant", 0)),
            type=MatchType(data["type"]),
            statut=MatchStatus(data["statut"]),
            confidence_score=int(data.get("confidence_score", 0)),
            date_score=int(data.get("date_score", 0)),
            amount_score=int(data.get("amount_score", 0)),
            description_score=int(data.get("description_score", 0)),
            supplier_score=int(data.get("supplier_score", 0)),
            validated_by_user=bool(data.get("validated_by_user", False)),
            validated_at=data.get("validated_at"),
            created_at=data.get("created_at") or _timestamp(None),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "facture_id": self.facture_id,
            "transaction_id": self.transaction_id,
            "montant": self.montant.to_cents(),
            "type": self.type.value,
            "statut": self.statut.value,
            "confidence_score": self.confidence_score,
            "date_score": self.date_score,
            "amount_score": self.amount_score,
            "description_score": self.description_score,
            "supplier_score": self.supplier_score,
            "validated_by_user": self.validated_by_user,
            "validated_at": self.validated_at,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class AnomalyRecord:
    """A detected anomaly with its persisted lifecycle state."""

    id: str
    tenant_id: str
    anomaly: DetectedAnomaly
    statut: AnomalyStatus
    created_at: str

    # Optional fields
    resolved_at: str | None = None
    notes: str | None = None

    @property
    def type(self) -> AnomalyType:
        return self.anomaly.type

    @property
    def severite(self) -> AnomalySeverity:
        return self.anomaly.severite

    @property
    def is_open(self) -> bool:
        """Check if the anomaly still awaits review."""
        return self.statut == AnomalyStatus.OUVERTE

    @classmethod
    def from_detected(
        cls, tenant_id: str, anomaly: DetectedAnomaly, when: datetime | None = None
    ) -> "AnomalyRecord":
        """Create an open record for a freshly detected anomaly."""
        return cls(
            id=new_record_id(),
            tenant_id=tenant_id,
            anomaly=anomaly,
            statut=AnomalyStatus.OUVERTE,
            created_at=_timestamp(when),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnomalyRecord":
        """Create from persisted (flattened) dict."""
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            anomaly=DetectedAnomaly.from_dict(data),
            statut=AnomalyStatus(data.get("statut", AnomalyStatus.OUVERTE.value)),
            created_at=data.get("created_at") or _timestamp(None),
            resolved_at=data.get("resolved_at"),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to flattened dict for JSON persistence."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            **self.anomaly.to_dict(),
            "statut": self.statut.value,
            "resolved_at": self.resolved_at,
            "notes": self.notes,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class AutomationLogEntry:
    """Audit trail entry for an action the engine took on its own."""

    id: str
    tenant_id: str
    action_type: AutomationAction
    entity_id: str
    created_at: str

    # Optional fields
    entity_type: str = "transaction"
    metadata: dict[str, Any] = field(default_factory=dict)
    is_reversible: bool = False
    is_reversed: bool = False

    @classmethod
    def for_match(
        cls, tenant_id: str, suggestion: MatchSuggestion, when: datetime | None = None
    ) -> "AutomationLogEntry":
        """Audit entry for an auto match (reversible) or a suggestion (not)."""
        is_auto = suggestion.type == MatchType.AUTO
        invoice = suggestion.facture
        return cls(
            id=new_record_id(),
            tenant_id=tenant_id,
            action_type=AutomationAction.AUTO_MATCH if is_auto else AutomationAction.MATCH_SUGGESTED,
            entity_id=suggestion.transaction.id,
            created_at=_timestamp(when),
            metadata={
                "facture_id": invoice.id,
                "confidence": suggestion.confidence,
                "fournisseur": invoice.nom_fournisseur,
                "montant": invoice.montant_ttc.to_cents() if invoice.montant_ttc is not None else None,
                "scores": suggestion.score.to_dict(),
            },
            is_reversible=is_auto,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutomationLogEntry":
        """Create from persisted dict."""
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            action_type=AutomationAction(data["action_type"]),
            entity_id=data["entity_id"],
            created_at=data.get("created_at") or _timestamp(None),
            entity_type=data.get("entity_type", "transaction"),
            metadata=dict(data.get("metadata") or {}),
            is_reversible=bool(data.get("is_reversible", False)),
            is_reversed=bool(data.get("is_reversed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "action_type": self.action_type.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "metadata": self.metadata,
            "is_reversible": self.is_reversible,
            "is_reversed": self.is_reversed,
            "created_at": self.created_at,
        }
