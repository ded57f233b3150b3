"""Tests for the HTTP API."""

import pytest
from httpx import ASGITransport, AsyncClient

from furlong.config import settings
from furlong.main import app
from furlong.store import MemoryStore, VersionConflict


@pytest.fixture
async def client(memory_store):
    app.state.store = memory_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.state.store = None


async def parse(client, *texts):
    documents = [{"file_name": f"chart{i}.txt", "text": t} for i, t in enumerate(texts)]
    response = await client.post("/api/race-charts/parse", json={"documents": documents})
    assert response.status_code == 200
    return response.json()


def confirmation(item: dict, override: bool = False) -> dict:
    best = item["candidates"][item["selected"]]
    return {
        "horse": item["horse"],
        "metadata": item["metadata"],
        "record": best,
        "override": override,
        "file_name": item["file_name"],
    }


class TestRaceCharts:
    @pytest.mark.asyncio
    async def test_parse(self, client, sprint_chart):
        data = await parse(client, sprint_chart, "")
        assert data["counts"]["ready"] == 1
        assert data["counts"]["error"] == 1
        assert data["items"][0]["horse"] == "2022 Ginger Punch"

    @pytest.mark.asyncio
    async def test_batch_too_large(self, client, monkeypatch):
        monkeypatch.setattr(settings, "max_batch_documents", 1)
        response = await client.post("/api/race-charts/parse", json={
            "documents": [{"file_name": "a", "text": ""}, {"file_name": "b", "text": ""}]
        })
        assert response.status_code == 413

    @pytest.mark.asyncio
    async def test_save_and_duplicate(self, client, sprint_chart):
        item = (await parse(client, sprint_chart))["items"][0]
        response = await client.post("/api/race-charts/save", json={"records": [confirmation(item)]})
        assert response.status_code == 200
        assert response.json()["saved_count"] == 1

        item = (await parse(client, sprint_chart))["items"][0]
        assert item["status"] == "duplicate"
        response = await client.post("/api/race-charts/save", json={"records": [confirmation(item)]})
        assert response.json()["skipped_count"] == 1

    @pytest.mark.asyncio
    async def test_edited_margin_text_and_unreadable_record(self, client, sprint_chart):
        item = (await parse(client, sprint_chart))["items"][0]
        edited = confirmation(item)
        edited["record"]["positions"]["finish"] = "2nk"
        unreadable = {"horse": "Silver Streak", "metadata": {"date": "2024-01-27", "track": 5},
                      "file_name": "bad.txt"}
        response = await client.post("/api/race-charts/save", json={"records": [edited, unreadable]})
        assert response.status_code == 200
        data = response.json()
        assert data["saved_count"] == 1
        assert data["skipped_count"] == 1
        assert data["skipped"][0]["kind"] == "ParseFailure"
        assert data["skipped"][0]["file_name"] == "bad.txt"

    @pytest.mark.asyncio
    async def test_save_conflict(self, client, sprint_chart):
        class FailingStore(MemoryStore):
            async def put_many(self, writes):
                raise VersionConflict("history", 1, 2)

        item = (await parse(client, sprint_chart))["items"][0]
        app.state.store = FailingStore({"registry": {}, "history": {}})
        response = await client.post("/api/race-charts/save", json={"records": [confirmation(item)]})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "version_conflict"


class TestHorses:
    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/api/horses")
        assert response.status_code == 200
        assert len(response.json()) == 3

    @pytest.mark.asyncio
    async def test_add(self, client):
        response = await client.post("/api/horses", json={"name": "Zenyatta", "owner": "Moss"})
        assert response.status_code == 200
        assert "Zenyatta" in [h["name"] for h in response.json()]

    @pytest.mark.asyncio
    async def test_merge_conflict(self, client):
        response = await client.post("/api/horses/merge", json={
            "primary": "Silver Streak", "names": ["Bold Venture (USA)"],
        })
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "alias_conflict"

    @pytest.mark.asyncio
    async def test_rename_and_unmerge(self, client):
        response = await client.post("/api/horses/rename", json={
            "old_name": "Silver Streak", "new_name": "Silver Streak II",
        })
        assert response.status_code == 200
        response = await client.post("/api/horses/unmerge", json={
            "primary": "Silver Streak II", "alias": "Silver Streak",
        })
        assert response.status_code == 200
        names = [h["name"] for h in response.json()]
        assert "Silver Streak" in names and "Silver Streak II" in names

    @pytest.mark.asyncio
    async def test_unmerge_missing_alias(self, client):
        response = await client.post("/api/horses/unmerge", json={"primary": "Silver Streak", "alias": "X"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_import(self, client):
        response = await client.post("/api/horses/import", json={
            "entries": [{"name": "Zenyatta", "aliases": ["Zenyatta (USA)"]}],
        })
        assert response.json()["stats"]["added"] == 1


class TestHistory:
    @pytest.mark.asyncio
    async def test_unknown_horse(self, client):
        response = await client.get("/api/history/Zenyatta")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_entries(self, client):
        response = await client.post("/api/history/Silver Streak/entries", json={
            "type": "training", "date": "2024-05-01", "track": "PAY",
            "fields": {"best_5f": "01:02.35"},
        })
        assert response.status_code == 200
        response = await client.put("/api/history/Silver Streak/entries", json={
            "date": "2024-05-01", "track": "PAY", "fields": {"best_5f": "01:01.90"},
        })
        assert response.status_code == 200
        data = (await client.get("/api/history/Silver Streak")).json()
        assert data["summary"]["best_5f"] == "01:01.90"

        response = await client.request("DELETE", "/api/history/Silver Streak/entries", json={
            "date": "2024-05-01", "track": "PAY",
        })
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_notes(self, client):
        body = {"horse": "Ginger Punch", "date": "2024-02-01", "note": "Bruised foot"}
        response = await client.post("/api/notes", json=body)
        assert response.json() == {"status": "added", "horse": "2022 Ginger Punch"}

        response = await client.post("/api/notes", json=body)
        assert response.status_code == 400

        response = await client.put("/api/notes", json=dict(body, note="Fine"))
        assert response.status_code == 200

        response = await client.request("DELETE", "/api/notes", json={"horse": "Ginger Punch", "date": "2024-02-01"})
        assert response.status_code == 200


class TestSystem:
    @pytest.mark.asyncio
    async def test_health(self, client):
        data = (await client.get("/api/health")).json()
        assert data["status"] == "healthy"
        assert data["registry_version"] == 1

    @pytest.mark.asyncio
    async def test_activity(self, client):
        await client.post("/api/notes", json={"horse": "Silver Streak", "date": "2024-02-01", "note": "x"})
        entries = (await client.get("/api/activity")).json()
        assert entries[0]["activity_type"] == "note"
        assert entries[0]["horse"] == "Silver Streak"
