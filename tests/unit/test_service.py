"""Tests for store-backed registry and history operations."""

import pytest

from furlong.horses import service
from furlong.horses.history import HistoryError
from furlong.horses.registry import RegistryError, partition_violations
from furlong.store import HISTORY_KEY, REGISTRY_KEY, MemoryStore


def race(day: str, track: str, horse: str, observed: str) -> dict:
    return {"type": "race", "date": day, "track": track, "horse": horse, "observed_name": observed}


@pytest.fixture
def store(registry) -> MemoryStore:
    registry["Ginger Punch (USA)"] = {
        "name": "Ginger Punch (USA)", "owner": "", "country": "", "is_historic": False, "aliases": [],
    }
    return MemoryStore({
        REGISTRY_KEY: registry,
        HISTORY_KEY: {
            "2022 Ginger Punch": [race("2024-01-27", "GP", "2022 Ginger Punch", "Ginger Punch")],
            "Ginger Punch (USA)": [race("2024-08-04", "SAR", "Ginger Punch (USA)", "Ginger Punch (USA)")],
        },
    })


class TestRegistryOperations:
    @pytest.mark.asyncio
    async def test_list(self, store):
        listing = await service.list_horses(store)
        assert "Ginger Punch (22)" in [h["display_name"] for h in listing]

    @pytest.mark.asyncio
    async def test_merge_folds_history(self, store):
        await service.merge_horses(store, "2022 Ginger Punch", ["Ginger Punch (USA)"])
        result = await service.get_history(store, "Ginger Punch (USA)")
        assert result["horse"]["name"] == "2022 Ginger Punch"
        assert [e["date"] for e in result["entries"]] == ["2024-08-04", "2024-01-27"]
        assert result["summary"]["race_count"] == 2

    @pytest.mark.asyncio
    async def test_unmerge_splits_history(self, store):
        await service.merge_horses(store, "2022 Ginger Punch", ["Ginger Punch (USA)"])
        await service.unmerge_horse(store, "2022 Ginger Punch", "Ginger Punch (USA)")
        usa = await service.get_history(store, "Ginger Punch (USA)")
        assert usa["horse"]["name"] == "Ginger Punch (USA)"
        assert [e["date"] for e in usa["entries"]] == ["2024-08-04"]
        primary = await service.get_history(store, "2022 Ginger Punch")
        assert [e["date"] for e in primary["entries"]] == ["2024-01-27"]

    @pytest.mark.asyncio
    async def test_rename_keeps_history_reachable(self, store):
        await service.rename_horse(store, "2022 Ginger Punch", "Ginger Punch 2022")
        result = await service.get_history(store, "2022 Ginger Punch")
        assert result["horse"]["name"] == "Ginger Punch 2022"
        assert result["entries"][0]["horse"] == "Ginger Punch 2022"

    @pytest.mark.asyncio
    async def test_refused_merge_changes_nothing(self, store):
        before = await store.get(REGISTRY_KEY)
        with pytest.raises(RegistryError):
            await service.merge_horses(store, "Silver Streak", ["Bold Venture (USA)"])
        after = await store.get(REGISTRY_KEY)
        assert after.version == before.version
        assert partition_violations(after.value) == []

    @pytest.mark.asyncio
    async def test_import(self, store):
        result = await service.import_horses(store, [{"name": "Zenyatta", "aliases": ["Zenyatta (USA)"]}])
        assert result["stats"] == {"added": 1, "updated": 0}

    @pytest.mark.asyncio
    async def test_add_or_update(self, store):
        await service.add_or_update_horse(store, "Silver Streak", owner="Calumet")
        registry = (await store.get(REGISTRY_KEY)).value
        assert registry["Silver Streak"]["owner"] == "Calumet"


class TestHistoryOperations:
    @pytest.mark.asyncio
    async def test_unknown_horse(self, store):
        with pytest.raises(RegistryError) as exc:
            await service.get_history(store, "Zenyatta")
        assert exc.value.code == "not_found"

    @pytest.mark.asyncio
    async def test_training_entry_updates_summary(self, store):
        await service.add_entry(store, "silver streak", {
            "type": "training", "date": "2024-05-01", "track": "PAY",
            "best_1f": "00:11.20", "best_5f": "01:02.35", "max_speed": 38.5,
        })
        result = await service.get_history(store, "Silver Streak")
        assert result["summary"]["best_5f"] == "01:02.35"
        assert result["summary"]["max_speed"] == 38.5

        await service.update_entry(store, "Silver Streak", "2024-05-01", "PAY", {"best_5f": "01:01.10"})
        result = await service.get_history(store, "Silver Streak")
        assert result["summary"]["best_5f"] == "01:01.10"

        await service.delete_entry(store, "Silver Streak", "2024-05-01", "PAY")
        result = await service.get_history(store, "Silver Streak")
        assert result["entries"] == []

    @pytest.mark.asyncio
    async def test_notes_resolve_aliases(self, store):
        canonical = await service.add_note(store, "Ginger Punch", "2024-02-01", "Bruised foot")
        assert canonical == "2022 Ginger Punch"
        await service.update_note(store, "GINGER PUNCH 22", "2024-02-01", "Foot fine")
        result = await service.get_history(store, "2022 Ginger Punch")
        notes = [e for e in result["entries"] if e["type"] == "note"]
        assert notes[0]["note"] == "Foot fine"

        await service.delete_note(store, "Ginger Punch", "2024-02-01")
        with pytest.raises(HistoryError):
            await service.delete_note(store, "Ginger Punch", "2024-02-01")
