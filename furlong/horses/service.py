"""Store-backed registry and history operations.

Each function is one read-modify-write under the store lock, writing every
touched document against the version it was read at.
"""

import logging
from typing import Optional

from furlong.activity_log import log_note, log_registry
from furlong.horses import history as hist
from furlong.horses import registry as reg
from furlong.horses.identity import clean_name, display_name, resolve
from furlong.store import HISTORY_KEY, REGISTRY_KEY, SUMMARIES_KEY, KeyValueStore

logger = logging.getLogger(__name__)


async def _load(store: KeyValueStore):
    snapshot = await store.get_many(REGISTRY_KEY, HISTORY_KEY, SUMMARIES_KEY)
    return (
        snapshot,
        snapshot[REGISTRY_KEY].value or {},
        snapshot[HISTORY_KEY].value or {},
        snapshot[SUMMARIES_KEY].value or {},
    )


async def _save(store: KeyValueStore, snapshot, registry=None, history=None, summaries=None) -> None:
    writes = {}
    if registry is not None:
        writes[REGISTRY_KEY] = (registry, snapshot[REGISTRY_KEY].version)
    if history is not None:
        writes[HISTORY_KEY] = (history, snapshot[HISTORY_KEY].version)
    if summaries is not None:
        writes[SUMMARIES_KEY] = (summaries, snapshot[SUMMARIES_KEY].version)
    await store.put_many(writes)


async def list_horses(store: KeyValueStore) -> list[dict]:
    registry = (await store.get(REGISTRY_KEY)).value or {}
    return reg.registry_listing(registry)


async def add_or_update_horse(
    store: KeyValueStore,
    name: str,
    owner: Optional[str] = None,
    country: Optional[str] = None,
    is_historic: Optional[bool] = None,
) -> list[dict]:
    async with store.lock:
        snapshot, registry, _, _ = await _load(store)
        registry, canonical = reg.add_or_update(registry, name, owner, country, is_historic)
        await _save(store, snapshot, registry=registry)
    log_registry("update", canonical)
    return reg.registry_listing(registry)


async def merge_horses(store: KeyValueStore, primary: str, names: list[str]) -> list[dict]:
    """Merge registry entries and fold the absorbed horses' history into ``primary``."""
    async with store.lock:
        snapshot, registry, history, summaries = await _load(store)
        registry, absorbed = reg.merge(registry, primary, names)
        canonical = resolve(primary, registry)
        for name in absorbed:
            hist.fold_history(history, name, canonical)
            summaries.pop(name, None)
        hist.recompute_summaries(summaries, history, {canonical})
        await _save(store, snapshot, registry, history, summaries)
    log_registry("merge", canonical, ", ".join(names))
    return reg.registry_listing(registry)


async def rename_horse(store: KeyValueStore, old: str, new: str) -> list[dict]:
    async with store.lock:
        snapshot, registry, history, summaries = await _load(store)
        old_key = resolve(old, registry) or old
        registry = reg.rename(registry, old, new)
        new_key = clean_name(new)
        hist.fold_history(history, old_key, new_key)
        summaries.pop(old_key, None)
        hist.recompute_summaries(summaries, history, {new_key})
        await _save(store, snapshot, registry, history, summaries)
    log_registry("rename", new_key, f"from {old_key}")
    return reg.registry_listing(registry)


async def unmerge_horse(store: KeyValueStore, primary: str, alias: str) -> list[dict]:
    async with store.lock:
        snapshot, registry, history, summaries = await _load(store)
        registry = reg.unmerge(registry, primary, alias)
        primary_key = resolve(primary, registry)
        alias_key = resolve(alias, registry)
        hist.split_history(history, registry, primary_key, alias_key)
        hist.recompute_summaries(summaries, history, {primary_key, alias_key})
        await _save(store, snapshot, registry, history, summaries)
    log_registry("unmerge", alias_key, f"from {primary_key}")
    return reg.registry_listing(registry)


async def import_horses(store: KeyValueStore, entries: list[dict]) -> dict:
    async with store.lock:
        snapshot, registry, _, _ = await _load(store)
        registry, stats = reg.import_entries(registry, entries)
        await _save(store, snapshot, registry=registry)
    log_registry("import", f"{len(entries)} entries", f"{stats['added']} added, {stats['updated']} updated")
    return {"stats": stats, "horses": reg.registry_listing(registry)}


def _require_horse(registry: dict, name: str) -> str:
    canonical = resolve(name, registry)
    if canonical is None:
        raise reg.RegistryError("not_found", f"Horse '{name}' is not in the registry", name)
    return canonical


async def get_history(store: KeyValueStore, name: str) -> dict:
    """History and summary of whichever horse ``name`` resolves to."""
    snapshot = await store.get_many(REGISTRY_KEY, HISTORY_KEY, SUMMARIES_KEY)
    registry = snapshot[REGISTRY_KEY].value or {}
    canonical = _require_horse(registry, name)
    entries = (snapshot[HISTORY_KEY].value or {}).get(canonical, [])
    summary = (snapshot[SUMMARIES_KEY].value or {}).get(canonical) or hist.summarize(canonical, entries)
    return {
        "horse": dict(registry[canonical], display_name=display_name(canonical)),
        "entries": entries,
        "summary": summary,
    }


async def _mutate_history(store: KeyValueStore, name: str, change) -> str:
    async with store.lock:
        snapshot, registry, history, summaries = await _load(store)
        canonical = _require_horse(registry, name)
        change(history, canonical)
        hist.recompute_summaries(summaries, history, {canonical})
        await _save(store, snapshot, history=history, summaries=summaries)
    return canonical


async def add_entry(store: KeyValueStore, name: str, entry: dict) -> str:
    return await _mutate_history(store, name, lambda h, c: hist.add_entry(h, c, entry))


async def update_entry(store: KeyValueStore, name: str, entry_date: str, track: str, changes: dict) -> str:
    return await _mutate_history(
        store, name, lambda h, c: hist.update_entry(h, c, entry_date, track, changes)
    )


async def delete_entry(store: KeyValueStore, name: str, entry_date: str, track: str) -> str:
    return await _mutate_history(store, name, lambda h, c: hist.delete_entry(h, c, entry_date, track))


async def add_note(store: KeyValueStore, name: str, note_date: str, text: str) -> str:
    canonical = await _mutate_history(store, name, lambda h, c: hist.add_note(h, c, note_date, text))
    log_note("added", canonical, note_date)
    return canonical


async def update_note(store: KeyValueStore, name: str, note_date: str, text: str) -> str:
    canonical = await _mutate_history(store, name, lambda h, c: hist.update_note(h, c, note_date, text))
    log_note("edited", canonical, note_date)
    return canonical


async def delete_note(store: KeyValueStore, name: str, note_date: str) -> str:
    canonical = await _mutate_history(store, name, lambda h, c: hist.delete_note(h, c, note_date))
    log_note("deleted", canonical, note_date)
    return canonical
