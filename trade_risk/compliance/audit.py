"""Audit logging with dual-write: JSONL file + optional database insert.

Each record carries a SHA-256 checksum over its canonical fields so
downstream consumers can verify integrity.

Auditing never affects the operation being audited: every failure (file,
database, serialization) is logged and swallowed. The DB insert runs in
its own session and transaction, separate from the caller's.
"""

from __future__ import annotations

import hashlib
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from trade_risk.core.enums import AuditAction
from trade_risk.core.models import AuditLog
from trade_risk.core.utils.logging_config import get_logger
from trade_risk.core.utils.timeutils import to_naive_utc, utc_now

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_AUDIT_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "logs",
)
DEFAULT_AUDIT_FILE = "audit.jsonl"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compute_checksum(record: dict[str, Any]) -> str:
    """SHA-256 over timestamp, action and user id."""
    canonical_fields = [
        str(record.get("timestamp", "")),
        str(record.get("action", "")),
        str(record.get("user_id", "")),
    ]
    payload = "|".join(canonical_fields).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_checksum(record: dict[str, Any]) -> bool:
    return record.get("checksum") == _compute_checksum(record)


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------


class AuditLogger:
    """Append-only audit logger with dual-write (JSONL file + optional DB).

    Args:
        audit_dir: Directory for the JSONL file. Defaults to ``logs/``
            at the project root.
        audit_file: Filename within *audit_dir*. Defaults to ``audit.jsonl``.
        db_session_factory: Optional sessionmaker. If provided, each record
            is *also* inserted into ``audit_logs``.
    """

    def __init__(
        self,
        audit_dir: str | None = None,
        audit_file: str = DEFAULT_AUDIT_FILE,
        db_session_factory: Any = None,
    ) -> None:
        self._audit_dir = audit_dir or DEFAULT_AUDIT_DIR
        self._audit_path = os.path.join(self._audit_dir, audit_file)
        self._db_session_factory = db_session_factory

        Path(self._audit_dir).mkdir(parents=True, exist_ok=True)

        logger.info(
            "audit_logger.init",
            audit_path=self._audit_path,
            db_enabled=db_session_factory is not None,
        )

    @property
    def path(self) -> str:
        return self._audit_path

    # ------------------------------------------------------------------
    # Core logging
    # ------------------------------------------------------------------

    def record(self, action: AuditAction | str, user_id: int | None) -> dict[str, Any] | None:
        """Append one audit record.

        Returns:
            The record dict (including checksum), or ``None`` if it could
            not be built. Write failures still return the record.
        """
        try:
            record: dict[str, Any] = {
                "timestamp": utc_now().isoformat(),
                "action": str(action.value if isinstance(action, AuditAction) else action),
                "user_id": user_id,
            }
            record["checksum"] = _compute_checksum(record)
        except Exception as exc:  # noqa: BLE001
            logger.warning("audit_logger.build_error", error=str(exc))
            return None

        self._write_jsonl(record)
        self._write_db(record)

        logger.info(
            "audit_logger.event",
            action=record["action"],
            user_id=user_id,
            checksum=record["checksum"][:12],
        )
        return record

    # ------------------------------------------------------------------
    # Query / retrieval
    # ------------------------------------------------------------------

    def get_audit_trail(
        self,
        action: AuditAction | str | None = None,
        user_id: int | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int = 500,
    ) -> list[dict[str, Any]]:
        """Read the JSONL trail with optional filters, most recent first.

        Sequential scan; meant for operational review. Use the DB copy for
        heavy queries.
        """
        if not os.path.exists(self._audit_path):
            return []

        action_str = str(
            action.value if isinstance(action, AuditAction) else action
        ) if action else None
        start = to_naive_utc(start_time) if start_time else None
        end = to_naive_utc(end_time) if end_time else None

        records: list[dict[str, Any]] = []
        try:
            with open(self._audit_path, "r", encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        rec = json.loads(line)
                    except json.JSONDecodeError:
                        continue

                    if action_str and rec.get("action") != action_str:
                        continue
                    if user_id is not None and rec.get("user_id") != user_id:
                        continue
                    if start or end:
                        rec_ts = datetime.fromisoformat(rec["timestamp"])
                        if start and rec_ts < start:
                            continue
                        if end and rec_ts > end:
                            continue

                    records.append(rec)
        except OSError as exc:
            logger.error("audit_logger.read_error", error=str(exc))
            return []

        records.reverse()
        return records[:limit]

    # ------------------------------------------------------------------
    # Internal write methods
    # ------------------------------------------------------------------

    def _write_jsonl(self, record: dict[str, Any]) -> None:
        """Append a single JSON line to the audit file."""
        try:
            with open(self._audit_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(record, default=str) + "\n")
        except OSError as exc:
            logger.error(
                "audit_logger.file_write_error",
                error=str(exc),
                action=record.get("action"),
            )

    def _write_db(self, record: dict[str, Any]) -> None:
        """Best-effort insert into ``audit_logs`` in a dedicated transaction."""
        if self._db_session_factory is None:
            return
        try:
            with self._db_session_factory() as session:
                session.add(
                    AuditLog(
                        action=record["action"],
                        user_id=record["user_id"],
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        checksum=record["checksum"],
                    )
                )
                session.commit()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "audit_logger.db_write_error",
                error=str(exc),
                action=record.get("action"),
            )
