"""Latest-wins history store for chat and split-test sessions."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session as SQLSession, select

from .database import get_session
from .errors import HistoryStoreError
from .models import (
    HistoryAuditRow,
    HistoryRecord,
    HistoryRecordRow,
    LifecycleState,
    RecordKind,
    utcnow,
)

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Keeps exactly one authoritative record per (related_id, lifecycle_state).

    Writes are timestamp-compared: a record replaces the stored one for its
    key only if it is at least as new, so replaying an older save is a no-op.
    Every accepted write is also appended to an audit log.
    """

    def upsert(self, record: HistoryRecord) -> bool:
        """
        Store a record under its key unless a newer one is already there.

        Returns True when the record became authoritative.
        """
        with get_session() as db:
            try:
                accepted = self._write(db, record)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("History upsert failed for %s/%s: %s", record.related_id, record.lifecycle_state.value, e)
                raise HistoryStoreError(f"Could not save history record {record.id}") from e
        return accepted

    def supersede_and_insert(self, outgoing: HistoryRecord, incoming: HistoryRecord) -> tuple[HistoryRecord, HistoryRecord]:
        """
        Move ``outgoing`` into the 'last' slot and install ``incoming`` as 'current'.

        Both writes share one transaction: either both land or neither does.
        Returns the records as stored.
        """
        if outgoing.related_id != incoming.related_id:
            raise ValueError("Outgoing and incoming records must belong to the same entity")
        if outgoing.id == incoming.id:
            raise ValueError("Incoming record needs its own id")

        now = utcnow()
        outgoing = outgoing.model_copy(update={"lifecycle_state": LifecycleState.LAST, "created_at": now})
        incoming = incoming.model_copy(update={"lifecycle_state": LifecycleState.CURRENT, "created_at": now})

        with get_session() as db:
            try:
                self._write(db, outgoing, force=True)
                db.flush()
                self._write(db, incoming, force=True)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(
                    "Rolled back supersede of %s by %s for %s: %s",
                    outgoing.id,
                    incoming.id,
                    outgoing.related_id,
                    e,
                )
                raise HistoryStoreError(f"Could not supersede history for {outgoing.related_id}") from e

        return outgoing, incoming

    def query_by_entity(self, entity_id: str) -> list[HistoryRecord]:
        """All authoritative records of an entity, across lifecycle states."""
        with get_session() as db:
            rows = db.exec(select(HistoryRecordRow).where(HistoryRecordRow.related_id == entity_id)).all()
            return [_to_record(r) for r in rows]

    def get(self, entity_id: str, state: LifecycleState) -> Optional[HistoryRecord]:
        """The authoritative record for one key, if any."""
        with get_session() as db:
            row = db.exec(
                select(HistoryRecordRow)
                .where(HistoryRecordRow.related_id == entity_id)
                .where(HistoryRecordRow.lifecycle_state == state.value)
            ).first()
            return _to_record(row) if row else None

    def get_record(self, record_id: str) -> Optional[HistoryRecord]:
        with get_session() as db:
            row = db.exec(select(HistoryRecordRow).where(HistoryRecordRow.record_id == record_id)).first()
            return _to_record(row) if row else None

    def list_records(self, kind: Optional[RecordKind] = None) -> list[HistoryRecord]:
        """All authoritative records, newest first, optionally of one kind."""
        with get_session() as db:
            statement = select(HistoryRecordRow).order_by(HistoryRecordRow.created_at.desc())
            if kind is not None:
                statement = statement.where(HistoryRecordRow.kind == kind.value)
            return [_to_record(r) for r in db.exec(statement).all()]

    def delete_record(self, record_id: str) -> bool:
        """Remove one authoritative record. The audit log is kept."""
        with get_session() as db:
            row = db.exec(select(HistoryRecordRow).where(HistoryRecordRow.record_id == record_id)).first()
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True

    def delete_entity(self, entity_id: str) -> int:
        """Remove every authoritative record of an entity. Returns the count."""
        with get_session() as db:
            rows = db.exec(select(HistoryRecordRow).where(HistoryRecordRow.related_id == entity_id)).all()
            for row in rows:
                db.delete(row)
            db.commit()
            return len(rows)

    def audit_log(self, entity_id: str) -> list[HistoryAuditRow]:
        """Every accepted write for an entity, oldest first."""
        with get_session() as db:
            rows = db.exec(
                select(HistoryAuditRow)
                .where(HistoryAuditRow.related_id == entity_id)
                .order_by(HistoryAuditRow.id)
            ).all()
            for r in rows:
                db.expunge(r)
            return list(rows)

    def _write(self, db: SQLSession, record: HistoryRecord, force: bool = False) -> bool:
        existing = db.exec(
            select(HistoryRecordRow)
            .where(HistoryRecordRow.related_id == record.related_id)
            .where(HistoryRecordRow.lifecycle_state == record.lifecycle_state.value)
        ).first()

        if existing is not None and not force and existing.created_at > record.created_at:
            logger.debug(
                "Ignoring stale history record %s for %s/%s",
                record.id,
                record.related_id,
                record.lifecycle_state.value,
            )
            return False

        # A record id lives under one key only; drop it from any other slot
        moved = db.exec(
            select(HistoryRecordRow)
            .where(HistoryRecordRow.record_id == record.id)
        ).all()
        for row in moved:
            if existing is None or row.row_id != existing.row_id:
                db.delete(row)
        if moved:
            db.flush()

        if existing is None:
            existing = HistoryRecordRow(
                record_id=record.id,
                kind=record.kind.value,
                related_id=record.related_id,
                lifecycle_state=record.lifecycle_state.value,
                created_at=record.created_at,
            )
        elif existing.record_id != record.id:
            logger.debug("Record %s supersedes %s for %s/%s", record.id, existing.record_id, record.related_id, record.lifecycle_state.value)

        existing.record_id = record.id
        existing.kind = record.kind.value
        existing.payload = record.payload
        existing.created_at = record.created_at
        existing.was_reset = record.was_reset
        existing.was_restored = record.was_restored
        db.add(existing)

        db.add(
            HistoryAuditRow(
                record_id=record.id,
                kind=record.kind.value,
                related_id=record.related_id,
                lifecycle_state=record.lifecycle_state.value,
                payload=record.payload,
                created_at=record.created_at,
            )
        )
        return True


def _to_record(row: HistoryRecordRow) -> HistoryRecord:
    return HistoryRecord(
        id=row.record_id,
        kind=RecordKind(row.kind),
        related_id=row.related_id,
        lifecycle_state=LifecycleState(row.lifecycle_state),
        payload=dict(row.payload or {}),
        created_at=row.created_at,
        was_reset=row.was_reset,
        was_restored=row.was_restored,
    )
