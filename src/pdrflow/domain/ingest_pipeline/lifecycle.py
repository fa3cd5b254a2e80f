"""Deduplication checks and record lifecycle transitions.

``LifecycleManager`` is the only component that writes manifest, granule and
provider-health records. Every update is a read-modify-write conditioned on the
record's ``revision``; a lost race re-reads the record and tries again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pdrflow.domain.errors import ConditionFailedError, RecordNotFound
from pdrflow.domain.model import (
    GranuleRecord,
    GranuleStatus,
    ManifestRecord,
    ManifestStatus,
    ProviderHealth,
    RecordTable,
    granule_key,
    manifest_key,
    provider_key,
    utcnow,
)
from pdrflow.domain.model.enums import (
    GRANULE_ORDER,
    GRANULE_TERMINAL,
    MANIFEST_ORDER,
    MANIFEST_TERMINAL,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import datetime

    from pdrflow.domain.model import GranuleFile, StoredRecord
    from pdrflow.domain.ports import ListingEntry, RecordKey, RecordStore

log = getLogger(__name__)

DEFAULT_MANIFEST_BATCH_SIZE: Final[int] = 60
MAX_WRITE_ATTEMPTS: Final[int] = 8


def _manifest_can_advance(current: ManifestStatus, target: ManifestStatus) -> bool:
    if current in MANIFEST_TERMINAL or current is target:
        return False
    if target is ManifestStatus.FAILED:
        return True
    return MANIFEST_ORDER[target] > MANIFEST_ORDER[current]


def _granule_can_advance(current: GranuleStatus, target: GranuleStatus) -> bool:
    if current in GRANULE_TERMINAL or current is target:
        return False
    if target is GranuleStatus.FAILED:
        return True
    return GRANULE_ORDER[target] > GRANULE_ORDER[current]


def _carry_staged(
    current: Mapping[str, GranuleFile], fresh: Mapping[str, GranuleFile]
) -> dict[str, GranuleFile]:
    staged = {slot.name: slot for slot in current.values() if slot.name and slot.staging_file}
    carried: dict[str, GranuleFile] = {}
    for slot_name, slot in fresh.items():
        previous = staged.get(slot.name) if slot.name else None
        carried[slot_name] = (
            slot
            if previous is None
            else slot.model_copy(
                update={"sip_file": previous.sip_file, "staging_file": previous.staging_file}
            )
        )
    return carried


@dataclass(slots=True)
class LifecycleManager:
    store: RecordStore
    clock: Callable[[], datetime] = field(default=utcnow)
    max_attempts: int = MAX_WRITE_ATTEMPTS

    # -- lookups ---------------------------------------------------------------

    async def find_manifest(self, name: str) -> ManifestRecord | None:
        try:
            item = await self.store.get(RecordTable.MANIFESTS, manifest_key(name))
        except RecordNotFound:
            return None
        return ManifestRecord.from_item(item)

    async def find_granule(self, granule_id: str, collection_name: str) -> GranuleRecord | None:
        try:
            item = await self.store.get(
                RecordTable.GRANULES, granule_key(granule_id, collection_name)
            )
        except RecordNotFound:
            return None
        return GranuleRecord.from_item(item)

    async def find_provider(self, name: str) -> ProviderHealth | None:
        try:
            item = await self.store.get(RecordTable.PROVIDERS, provider_key(name))
        except RecordNotFound:
            return None
        return ProviderHealth.from_item(item)

    # -- deduplication ---------------------------------------------------------

    async def granule_already_ingested(self, granule_id: str, collection_name: str) -> bool:
        """Return True only when the granule is recorded and completed."""

        record = await self.find_granule(granule_id, collection_name)
        return record is not None and record.status is GranuleStatus.COMPLETED

    async def find_new_manifests(
        self,
        candidates: Sequence[ListingEntry],
        *,
        batch_size: int = DEFAULT_MANIFEST_BATCH_SIZE,
    ) -> list[ListingEntry]:
        """Return the candidates with no manifest record, in candidate order."""

        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        unique: dict[str, ListingEntry] = {}
        for candidate in candidates:
            unique.setdefault(candidate.name, candidate)

        names = list(unique)
        existing: set[str] = set()
        for start in range(0, len(names), batch_size):
            chunk = names[start : start + batch_size]
            items = await self.store.batch_get(
                RecordTable.MANIFESTS, [manifest_key(name) for name in chunk]
            )
            existing.update(str(item["pdrName"]) for item in items)

        fresh = [entry for name, entry in unique.items() if name not in existing]
        log.debug("%d of %d candidate manifests are new", len(fresh), len(names))
        return fresh

    # -- manifests -------------------------------------------------------------

    async def record_manifest(
        self,
        candidate: ListingEntry,
        *,
        provider_name: str,
        failed: bool = False,
        error: str | None = None,
        address: str | None = None,
        collection_name: str | None = None,
    ) -> ManifestRecord:
        now = self.clock()
        record = ManifestRecord(
            pdr_name=candidate.name,
            original_url=candidate.url,
            provider_name=provider_name,
            collection_name=collection_name,
            address=address,
            created_at=now,
            updated_at=now,
        )
        if failed:
            record.status = ManifestStatus.FAILED
            record.is_active = False
            record.error = error or "unknown error"
        await self.store.put(RecordTable.MANIFESTS, record.to_item())
        log.info("Recorded manifest %s as %s", record.pdr_name, record.status)
        return record

    async def advance_manifest_status(
        self,
        name: str,
        status: ManifestStatus,
        *,
        error: str | None = None,
        granule_count: int | None = None,
    ) -> bool:
        """Move a manifest forward; repeats and regressions leave it untouched.

        Returns whether the record was written.
        """

        def mutate(record: ManifestRecord) -> bool:
            if not _manifest_can_advance(record.status, status):
                return False
            record.status = status
            if status is ManifestStatus.FAILED:
                record.is_active = False
                record.error = error or "unknown error"
            if granule_count is not None:
                record.granule_count = granule_count
            return True

        _, written = await self._modify(
            RecordTable.MANIFESTS, manifest_key(name), ManifestRecord, mutate
        )
        if written:
            log.info("Manifest %s is now %s", name, status)
        return written

    async def mark_manifest_failed(self, name: str, error: str) -> bool:
        try:
            return await self.advance_manifest_status(name, ManifestStatus.FAILED, error=error)
        except RecordNotFound:
            log.warning("Cannot mark unknown manifest %s failed: %s", name, error)
            return False

    async def mark_granule_in_manifest(
        self, manifest_name: str, granule_id: str, processed: bool
    ) -> ManifestRecord:
        """Set the manifest's completion flag for one granule, then re-check completion."""

        def mutate(record: ManifestRecord) -> bool:
            if record.granules.get(granule_id) is processed:
                return False
            record.granules = {**record.granules, granule_id: processed}
            return True

        record, _ = await self._modify(
            RecordTable.MANIFESTS, manifest_key(manifest_name), ManifestRecord, mutate
        )
        if processed and await self.complete_manifest_if_done(manifest_name):
            return await self._load(
                RecordTable.MANIFESTS, manifest_key(manifest_name), ManifestRecord
            )
        return record

    async def complete_manifest_if_done(self, name: str) -> bool:
        """Advance a parsed manifest to completed once every granule is processed."""

        def mutate(record: ManifestRecord) -> bool:
            if not record.is_complete():
                return False
            record.status = ManifestStatus.COMPLETED
            return True

        _, written = await self._modify(
            RecordTable.MANIFESTS, manifest_key(name), ManifestRecord, mutate
        )
        if written:
            log.info("Manifest %s completed", name)
        return written

    # -- granules --------------------------------------------------------------

    async def record_granule(self, record: GranuleRecord) -> GranuleRecord | None:
        """Persist a freshly built granule and register it with its manifest.

        Returns None, writing nothing, when the granule is already completed. An
        existing record is rewritten conditionally; slots already staged under
        the same file name keep their staged copies.
        """

        existing = await self.find_granule(record.granule_id, record.collection_name)
        if existing is None:
            now = self.clock()
            stored = record.model_copy(update={"revision": 0, "created_at": now, "updated_at": now})
            await self.store.put(RecordTable.GRANULES, stored.to_item())
        else:
            completed = False

            def mutate(current: GranuleRecord) -> bool:
                nonlocal completed
                if current.status is GranuleStatus.COMPLETED:
                    completed = True
                    return False
                current.files = _carry_staged(current.files, record.files)
                current.recipe = record.recipe
                current.pdr_name = record.pdr_name
                if current.status is GranuleStatus.FAILED:
                    current.status = record.status
                    current.duration = None
                return True

            stored, _ = await self._modify(RecordTable.GRANULES, record.key, GranuleRecord, mutate)
            if completed:
                log.info(
                    "Granule %s is already completed, not recording it again", record.granule_id
                )
                return None

        await self.mark_granule_in_manifest(stored.pdr_name, stored.granule_id, False)
        return stored

    async def advance_granule_status(self, key: RecordKey, status: GranuleStatus) -> bool:
        now = self.clock()

        def mutate(record: GranuleRecord) -> bool:
            if not _granule_can_advance(record.status, status):
                return False
            record.status = status
            if status is GranuleStatus.COMPLETED:
                record.duration = (now - record.created_at).total_seconds()
            return True

        _, written = await self._modify(RecordTable.GRANULES, key, GranuleRecord, mutate)
        if written:
            log.info("Granule %s is now %s", key.get("granuleId"), status)
        return written

    async def record_file_staged(
        self,
        key: RecordKey,
        file_name: str,
        source_url: str,
        staging_uri: str,
    ) -> GranuleRecord:
        """Record a staged file on its granule slot and advance the granule.

        The first staged file moves the granule to processing; once every named
        slot has a staged copy the granule completes.
        """

        now = self.clock()

        def mutate(record: GranuleRecord) -> bool:
            if record.is_terminal:
                return False
            changed = False
            slot_name = next(
                (name for name, slot in record.files.items() if slot.name == file_name), None
            )
            if slot_name is None:
                log.warning(
                    "Granule %s has no slot for %s; staged copy is not recorded",
                    record.granule_id,
                    file_name,
                )
            else:
                slot = record.files[slot_name]
                if slot.staging_file != staging_uri or slot.sip_file is None:
                    updated = slot.model_copy(
                        update={
                            "sip_file": slot.sip_file or source_url,
                            "staging_file": staging_uri,
                        }
                    )
                    record.files = {**record.files, slot_name: updated}
                    changed = True
            if record.status is GranuleStatus.PENDING:
                record.status = GranuleStatus.PROCESSING
                changed = True
            if record.all_files_staged():
                record.status = GranuleStatus.COMPLETED
                record.duration = (now - record.created_at).total_seconds()
                changed = True
            return changed

        record, written = await self._modify(RecordTable.GRANULES, key, GranuleRecord, mutate)
        if written and record.status is GranuleStatus.COMPLETED:
            log.info("Granule %s completed in %.1fs", record.granule_id, record.duration or 0.0)
        return record

    # -- providers -------------------------------------------------------------

    async def deactivate_provider(self, name: str, error: str) -> ProviderHealth:
        existing = await self.find_provider(name)
        if existing is None:
            now = self.clock()
            record = ProviderHealth(
                name=name, is_active=False, error=error, created_at=now, updated_at=now
            )
            await self.store.put(RecordTable.PROVIDERS, record.to_item())
            log.warning("Provider %s deactivated: %s", name, error)
            return record

        def mutate(record: ProviderHealth) -> bool:
            if not record.is_active and record.error == error:
                return False
            record.is_active = False
            record.error = error
            return True

        record, written = await self._modify(
            RecordTable.PROVIDERS, provider_key(name), ProviderHealth, mutate
        )
        if written:
            log.warning("Provider %s deactivated: %s", name, error)
        return record

    # -- internals -------------------------------------------------------------

    async def _load[TRecord: StoredRecord](
        self, table: RecordTable, key: RecordKey, record_type: type[TRecord]
    ) -> TRecord:
        return record_type.from_item(await self.store.get(table, key))

    async def _modify[TRecord: StoredRecord](
        self,
        table: RecordTable,
        key: RecordKey,
        record_type: type[TRecord],
        mutate: Callable[[TRecord], bool],
    ) -> tuple[TRecord, bool]:
        """Apply ``mutate`` to a fresh copy of the record and write the changed fields.

        ``mutate`` returns False to signal that nothing needs writing.
        """

        for attempt in range(1, self.max_attempts + 1):
            current = await self._load(table, key, record_type)
            revision = current.revision
            candidate = current.model_copy(deep=True)
            if not mutate(candidate):
                return current, False

            before = current.to_item()
            after = candidate.to_item()
            changes = {name: value for name, value in after.items() if before.get(name) != value}
            changes["revision"] = revision + 1
            changes["updatedAt"] = self.clock().isoformat()
            try:
                item = await self.store.update(
                    table, key, changes, expected={"revision": revision}
                )
            except ConditionFailedError:
                log.debug("Write conflict on %s %s (attempt %d)", table, dict(key), attempt)
                await asyncio.sleep(0)
                continue
            return record_type.from_item(item), True

        raise ConditionFailedError(table, key)
