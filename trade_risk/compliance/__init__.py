"""Audit trail for trade, risk and catalog events."""
from trade_risk.compliance.audit import AuditLogger

__all__ = ["AuditLogger"]
