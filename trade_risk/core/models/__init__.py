"""SQLAlchemy 2.0 ORM models for the Trade Risk service.

Re-exports Base and all model classes for convenient imports:
  - identity / catalog: User, Instrument
  - holdings: Portfolio, Position
  - history: Trade, RiskMetric, AuditLog
"""

from .audit_logs import AuditLog
from .base import Base
from .instruments import Instrument
from .portfolios import Portfolio, Position
from .risk_metrics import RiskMetric
from .trades import Trade
from .users import User

__all__ = [
    "Base",
    "User",
    "Instrument",
    "Portfolio",
    "Position",
    "Trade",
    "RiskMetric",
    "AuditLog",
]
