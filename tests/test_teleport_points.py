"""Tests for TeleportPointStore."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import RconNotConnectedError, StoreError
from services.teleport_points import (
    DIMENSIONS,
    TeleportPoint,
    TeleportPointStore,
    build_teleport_function,
    default_document,
)


@pytest.fixture
def rcon():
    service = MagicMock()
    service.send = AsyncMock(return_value="")
    return service


@pytest.fixture
def store(tmp_path, rcon):
    return TeleportPointStore(
        tmp_path / "teleport_points.json",
        tmp_path / "datapack" / "teleport_points.mcfunction",
        rcon,
    )


@pytest.mark.asyncio
async def test_missing_file_gives_default_document(store):
    document = await store.read()

    assert document == {dimension: {} for dimension in DIMENSIONS}
    assert json.loads(store.path.read_text(encoding="utf-8")) == default_document()


@pytest.mark.asyncio
async def test_corrupt_file_is_replaced(store):
    store.path.write_text("{not json", encoding="utf-8")

    document = await store.read()

    assert document == default_document()
    assert json.loads(store.path.read_text(encoding="utf-8")) == default_document()


@pytest.mark.asyncio
async def test_missing_dimension_is_filled_in(store):
    store.path.write_text(json.dumps({"overworld": {}}), encoding="utf-8")

    document = await store.read()

    assert set(document) == set(DIMENSIONS)


@pytest.mark.asyncio
async def test_add_then_read(store):
    inserted = await store.add("the_nether", "fortress", (100, 70, -20))

    assert inserted
    document = await store.read()
    assert document["the_nether"]["fortress"] == {
        "dimension": "the_nether",
        "name": "fortress",
        "coordinate": [100, 70, -20],
    }
    assert await store.list() == [TeleportPoint("the_nether", "fortress", (100, 70, -20))]


@pytest.mark.asyncio
async def test_add_existing_is_update(store):
    await store.add("overworld", "base", (1, 2, 3))
    inserted = await store.add("overworld", "base", (4, 5, 6))

    assert not inserted
    assert (await store.read())["overworld"]["base"]["coordinate"] == [4, 5, 6]


@pytest.mark.asyncio
async def test_remove_then_read(store):
    await store.add("the_end", "portal", (0, 60, 0))

    assert await store.remove("the_end", "portal")
    assert "portal" not in (await store.read())["the_end"]


@pytest.mark.asyncio
async def test_remove_missing(store, rcon):
    assert not await store.remove("overworld", "nothing")
    rcon.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_dimension(store):
    with pytest.raises(ValueError):
        await store.add("the_moon", "base", (0, 0, 0))


@pytest.mark.asyncio
async def test_mutation_writes_function_and_reloads(store, rcon):
    await store.add("overworld", "spawn", (0, 64, 0))

    script = store.function_path.read_text(encoding="utf-8")
    assert "execute in minecraft:overworld run tp @s 0 64 0" in script
    rcon.send.assert_awaited_once_with("reload")


@pytest.mark.asyncio
async def test_mutation_succeeds_when_server_offline(store, rcon):
    rcon.send.side_effect = RconNotConnectedError()

    assert await store.add("overworld", "spawn", (0, 64, 0))
    assert store.function_path.exists()


@pytest.mark.asyncio
async def test_write_failure_raises_store_error(tmp_path, rcon):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = TeleportPointStore(tmp_path / "points.json", blocker / "teleport.mcfunction", rcon)

    with pytest.raises(StoreError):
        await store.add("overworld", "spawn", (0, 64, 0))


def test_build_teleport_function():
    document = default_document()
    document["overworld"]["b"] = TeleportPoint("overworld", "b", (1, 2, 3)).to_dict()
    document["overworld"]["a"] = TeleportPoint("overworld", "a", (4, 5, 6)).to_dict()
    document["the_end"]["c"] = TeleportPoint("the_end", "c", (7, 8, 9)).to_dict()

    lines = build_teleport_function(document).splitlines()

    assert len(lines) == 4
    assert all(line.startswith("tellraw @s ") for line in lines)
    entry = json.loads(lines[1][len("tellraw @s "):])
    assert entry[1]["text"] == "a"
    assert entry[1]["clickEvent"] == {
        "action": "run_command",
        "value": "/execute in minecraft:overworld run tp @s 4 5 6",
    }
    assert "minecraft:the_end" in lines[3]


@pytest.mark.asyncio
async def test_concurrent_adds_keep_every_point(store):
    await asyncio.gather(
        store.add("overworld", "a", (1, 2, 3)),
        store.add("overworld", "b", (4, 5, 6)),
        store.add("the_end", "c", (7, 8, 9)),
    )

    document = await store.read()
    assert set(document["overworld"]) == {"a", "b"}
    assert set(document["the_end"]) == {"c"}


@pytest.mark.asyncio
async def test_reads_during_writes_never_reset_the_store(store):
    await store.add("overworld", "base", (0, 64, 0))

    results = await asyncio.gather(
        store.add("overworld", "farm", (10, 64, 10)),
        store.read(),
        store.remove("overworld", "farm"),
        store.read(),
    )

    for document in (results[1], results[3]):
        assert "base" in document["overworld"]
    assert set((await store.read())["overworld"]) == {"base"}


@pytest.mark.asyncio
async def test_save_leaves_no_temporary_files(store):
    await store.add("overworld", "spawn", (0, 64, 0))

    assert sorted(p.name for p in store.path.parent.iterdir() if p.is_file()) == ["teleport_points.json"]


@pytest.mark.asyncio
async def test_malformed_entry_is_skipped_in_list(store):
    document = default_document()
    document["overworld"]["broken"] = {"dimension": "overworld", "name": "broken"}
    document["overworld"]["ok"] = TeleportPoint("overworld", "ok", (1, 2, 3)).to_dict()
    store.path.write_text(json.dumps(document), encoding="utf-8")

    assert await store.list() == [TeleportPoint("overworld", "ok", (1, 2, 3))]
