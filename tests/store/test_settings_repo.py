import asyncio
import sqlite3
from dataclasses import replace

import pytest

from aika.memory.store import db
from aika.memory.store.errors import (
    NotFoundError,
    SanitizationDegenerate,
    StorageError,
)
from aika.memory.store.settings import SettingsRecord, SettingsRepo

GROUP = "1203630@g.us"
USER = "62811@s.whatsapp.net"


def _record(jid=GROUP, **overrides):
    base = SettingsRecord(
        use_ai=True,
        limit=25,
        is_premium=False,
        name="Weekend crew",
        jid=jid,
        owner_jid=USER,
    )
    return replace(base, **overrides)


@pytest.mark.asyncio
async def test_upsert_then_get_round_trip(settings_conn):
    repo = SettingsRepo(settings_conn)
    rec = _record()
    await repo.upsert(GROUP, rec)
    assert await repo.get(GROUP) == rec


@pytest.mark.asyncio
async def test_upsert_overwrites_single_row(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(GROUP, _record())
    await repo.upsert(GROUP, _record(use_ai=False, limit=3))

    got = await repo.get(GROUP)
    assert got.use_ai is False
    assert got.limit == 3
    rows = settings_conn.execute('SELECT COUNT(*) FROM "settings_1203630"').fetchone()[0]
    assert rows == 1


@pytest.mark.asyncio
async def test_stored_jid_always_matches_lookup_key(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(GROUP, _record(jid="someone-else@g.us"))
    assert (await repo.get(GROUP)).jid == GROUP


@pytest.mark.asyncio
async def test_get_without_upsert_is_not_found_and_creates_nothing(settings_conn):
    repo = SettingsRepo(settings_conn)
    with pytest.raises(NotFoundError) as info:
        await repo.get(USER)
    assert info.value.identifier == USER
    assert await repo.table_count() == 0


@pytest.mark.asyncio
async def test_get_missing_row_in_existing_table(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.ensure_table(GROUP)
    with pytest.raises(NotFoundError):
        await repo.get(GROUP)


@pytest.mark.asyncio
async def test_identifiers_sharing_a_prefix_collide(settings_conn):
    # Only the part before "@" names the table.
    repo = SettingsRepo(settings_conn)
    await repo.upsert("62811@s.whatsapp.net", _record(jid="62811@s.whatsapp.net"))
    assert await repo.ensure_table("62811@g.us") == "settings_62811"
    assert await repo.table_count() == 1


@pytest.mark.asyncio
async def test_malformed_owner_rejected_before_write(settings_conn):
    repo = SettingsRepo(settings_conn)
    for owner in ("not a jid", "owner"):
        with pytest.raises(StorageError):
            await repo.upsert(GROUP, _record(owner_jid=owner))
    assert await repo.table_count() == 0


@pytest.mark.asyncio
async def test_bare_key_rejected_before_write(settings_conn):
    repo = SettingsRepo(settings_conn)
    with pytest.raises(StorageError):
        await repo.upsert("62811", _record(jid="62811", owner_jid=""))
    with pytest.raises(NotFoundError):
        await repo.get("62811")


@pytest.mark.asyncio
async def test_row_corrupted_outside_repo_is_storage_error(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(GROUP, _record())
    with settings_conn:
        settings_conn.execute('UPDATE "settings_1203630" SET owner_jid = ?', ("owner",))
    with pytest.raises(StorageError):
        await repo.get(GROUP)


@pytest.mark.asyncio
async def test_empty_owner_is_allowed(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(GROUP, _record(owner_jid=""))
    assert (await repo.get(GROUP)).owner_jid == ""


@pytest.mark.asyncio
async def test_degenerate_identifier_rejected(settings_conn):
    repo = SettingsRepo(settings_conn)
    with pytest.raises(SanitizationDegenerate):
        await repo.upsert("@g.us", _record(jid="@g.us"))
    with pytest.raises(StorageError):
        await repo.get("---")


@pytest.mark.asyncio
async def test_concurrent_ensure_creates_one_table(settings_conn):
    repo = SettingsRepo(settings_conn)
    names = await asyncio.gather(*(repo.ensure_table(GROUP) for _ in range(20)))
    assert set(names) == {"settings_1203630"}
    assert await repo.table_count() == 1


@pytest.mark.asyncio
async def test_set_use_ai_creates_defaults_then_toggles(settings_conn):
    repo = SettingsRepo(settings_conn)
    rec = await repo.set_use_ai(USER, True, name="Budi")
    assert rec == replace(SettingsRecord.default(USER, name="Budi"), use_ai=True)

    await repo.set_use_ai(USER, False)
    got = await repo.get(USER)
    assert got.use_ai is False
    assert got.name == "Budi"


@pytest.mark.asyncio
async def test_delete_drops_table(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(GROUP, _record())
    await repo.delete(GROUP)

    assert not db.table_exists(settings_conn, "settings_1203630")
    with pytest.raises(NotFoundError):
        await repo.get(GROUP)
    # absent table is a no-op
    await repo.delete(GROUP)


@pytest.mark.asyncio
async def test_table_count_grows_per_conversation(settings_conn):
    repo = SettingsRepo(settings_conn)
    for i in range(5):
        jid = f"62800{i}@s.whatsapp.net"
        await repo.upsert(jid, SettingsRecord.default(jid))
    assert await repo.table_count() == 5


@pytest.mark.asyncio
async def test_sqlite_failure_is_chained(settings_conn):
    repo = SettingsRepo(settings_conn)
    settings_conn.close()
    with pytest.raises(StorageError) as info:
        await repo.upsert(GROUP, _record())
    assert isinstance(info.value.__cause__, sqlite3.Error)


@pytest.mark.asyncio
async def test_group_settings_lookup(settings_conn):
    repo = SettingsRepo(settings_conn)
    await repo.upsert(
        "62811@g.us",
        SettingsRecord(use_ai=True, limit=10, is_premium=False, name="g", jid="62811@g.us", owner_jid=""),
    )
    assert (await repo.get("62811@g.us")).use_ai is True
    with pytest.raises(NotFoundError):
        await repo.get("99999@g.us")
