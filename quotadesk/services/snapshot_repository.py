from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from quotadesk.core.catalog import SEAFOOD_PRODUCTS
from quotadesk.core.config import settings
from quotadesk.core.errors import NotFoundError, ValidationError
from quotadesk.models.app_snapshot import AppSnapshot
from quotadesk.schemas.storage import SnapshotEnvelope, StorageInfo, StoreState

logger = logging.getLogger(__name__)

STORAGE_VERSION = "1.0"
_COLLECTIONS = ("products", "purchases", "shipments", "weekly_quotas")


class SnapshotRepository:
    """
    Durable home of the whole store aggregate, kept as one JSON row.

    The row is keyed by `SNAPSHOT_KEY`; every save overwrites it.
    """

    def __init__(self, session_factory: Callable[[], Session], key: str | None = None) -> None:
        self._session_factory = session_factory
        self._key = key or settings.SNAPSHOT_KEY

    @property
    def key(self) -> str:
        return self._key

    def _row(self, db: Session) -> AppSnapshot | None:
        return db.query(AppSnapshot).filter(AppSnapshot.snapshot_key == self._key).first()

    def save(self, state: StoreState) -> None:
        now = datetime.now(timezone.utc)
        envelope = SnapshotEnvelope(version=STORAGE_VERSION, timestamp=now, state=state)
        self._write(envelope.model_dump_json(), version=STORAGE_VERSION, saved_at=now)

    def _write(self, payload: str, *, version: str, saved_at: datetime) -> None:
        with self._session_factory() as db:
            row = self._row(db)
            if row is None:
                row = AppSnapshot(snapshot_key=self._key, version=version, payload=payload, saved_at=saved_at)
                db.add(row)
            else:
                row.version = version
                row.payload = payload
                row.saved_at = saved_at
            db.commit()

    def load(self) -> StoreState | None:
        with self._session_factory() as db:
            row = self._row(db)
            if row is None:
                logger.info("snapshot_not_found key=%s", self._key)
                return None
            try:
                version, state = self._parse(row.payload)
            except ValueError as exc:
                logger.error("snapshot_corrupt key=%s error=%s action=cleared", self._key, exc)
                db.delete(row)
                db.commit()
                return None
            saved_at = row.saved_at

        if version != STORAGE_VERSION:
            logger.warning(
                "snapshot_version_mismatch key=%s expected=%s found=%s",
                self._key,
                STORAGE_VERSION,
                version,
            )
        logger.info(
            "snapshot_loaded key=%s saved_at=%s shipments=%s purchases=%s",
            self._key,
            saved_at,
            len(state.shipments),
            len(state.purchases),
        )
        return state

    def clear(self) -> bool:
        with self._session_factory() as db:
            row = self._row(db)
            if row is None:
                return False
            db.delete(row)
            db.commit()
        logger.info("snapshot_cleared key=%s", self._key)
        return True

    def info(self) -> StorageInfo:
        with self._session_factory() as db:
            row = self._row(db)
            if row is None:
                return StorageInfo(exists=False)
            return StorageInfo(
                exists=True,
                size_kb=round(len(row.payload.encode("utf-8")) / 1024),
                last_saved=row.saved_at,
                version=row.version,
            )

    def export_payload(self) -> str:
        with self._session_factory() as db:
            row = self._row(db)
            if row is None:
                raise NotFoundError(code="SNAPSHOT_NOT_FOUND", message="No data to export.")
            return row.payload

    def import_payload(self, raw: str) -> StoreState:
        try:
            version, state = self._parse(raw)
        except ValueError as exc:
            raise ValidationError(
                code="SNAPSHOT_INVALID",
                message="Imported data is not a valid snapshot.",
                errors=[str(exc)],
            ) from exc
        envelope = SnapshotEnvelope(
            version=version or STORAGE_VERSION,
            timestamp=datetime.now(timezone.utc),
            state=state,
        )
        self._write(envelope.model_dump_json(), version=envelope.version, saved_at=envelope.timestamp)
        logger.info("snapshot_imported key=%s shipments=%s", self._key, len(state.shipments))
        return state

    # --- Parsing and migration ---

    @staticmethod
    def _parse(raw: str) -> tuple[str, StoreState]:
        data = json.loads(raw)
        if not isinstance(data, dict) or not isinstance(data.get("state"), dict):
            raise ValueError("snapshot has no state object")
        state: dict[str, Any] = data["state"]
        for name in _COLLECTIONS:
            if not isinstance(state.get(name), list):
                raise ValueError(f"snapshot state field '{name}' must be a list")

        state = dict(state)
        state["products"] = _merge_catalog(state["products"])
        state["shipments"] = [_migrate_shipment(s) for s in state["shipments"]]
        return str(data.get("version") or ""), StoreState.model_validate(state)


def _merge_catalog(saved_products: list[Any]) -> list[dict[str, Any]]:
    # Saved bounds win; catalog additions appear; products no longer shipped are dropped.
    saved_by_id = {
        p.get("id"): p for p in saved_products if isinstance(p, dict) and p.get("id")
    }
    merged: list[dict[str, Any]] = []
    for default in SEAFOOD_PRODUCTS:
        merged.append(saved_by_id.get(default.id) or default.model_dump())
    return merged


def _migrate_shipment(shipment: Any) -> Any:
    if not isinstance(shipment, dict):
        return shipment
    migrated = dict(shipment)
    if not migrated.get("approval_status"):
        # Records written before the approval workflow existed were all accepted.
        migrated["approval_status"] = "approved"
    return migrated
