import asyncio
import base64
from types import SimpleNamespace

import pytest

from aika.memory.cache import ConversationCache
from aika.memory.cache.manager import MEDIA_IMAGE, MEDIA_VIDEO
from aika.memory.cache.model import FileReferencePart, InlineImagePart, TextPart
from aika.memory.store.conversations import ConversationRepo
from aika.memory.store.errors import StorageError

CHAT = "62811@s.whatsapp.net"


def _persona(**overrides):
    values = dict(
        system_instruction="You are Aika.",
        safety_settings=[("HARM_CATEGORY_HARASSMENT", "BLOCK_NONE")],
        TEMPERATURE=0.7,
        TOP_K=64,
        TOP_P=0.5,
        MAX_OUTPUT_TOKENS=8192,
        RESPONSE_MIME_TYPE="text/plain",
        IMAGE_MIME_TYPE="image/jpeg",
        VIDEO_MIME_TYPE="video/mp4",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class FailingRepo:
    """Repo whose every call fails like a broken database."""

    async def load(self, identifier):
        raise StorageError("disk gone")

    async def save(self, identifier, record):
        raise StorageError("disk gone")

    async def delete(self, identifier):
        raise StorageError("disk gone")


@pytest.fixture
def repo(chat_conn):
    return ConversationRepo(chat_conn)


@pytest.mark.asyncio
async def test_turns_kept_in_append_order(repo):
    cache = ConversationCache(repo, _persona())
    for i in range(5):
        await cache.add_turn(CHAT, "user" if i % 2 == 0 else "model", f"msg {i}")

    rec = await cache.get_or_load(CHAT)
    assert [t.text() for t in rec.contents] == [f"msg {i}" for i in range(5)]
    assert [t.role for t in rec.contents] == ["user", "model", "user", "model", "user"]


@pytest.mark.asyncio
async def test_fixed_fields_set_once(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "first")
    first = await cache.get_or_load(CHAT)
    for i in range(100):
        await cache.add_turn(CHAT, "user", f"turn {i}")
    later = await cache.get_or_load(CHAT)

    assert later.system_instruction == first.system_instruction
    assert later.safety_settings == first.safety_settings
    assert later.generation_config == first.generation_config
    assert later.system_instruction.text() == "You are Aika."
    assert len(later.contents) == 101


@pytest.mark.asyncio
async def test_get_or_load_returns_independent_copy(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "hi")
    copy = await cache.get_or_load(CHAT)
    copy.contents.clear()
    assert len((await cache.get_or_load(CHAT)).contents) == 1


@pytest.mark.asyncio
async def test_unknown_identifier_is_none(repo):
    cache = ConversationCache(repo, _persona())
    assert await cache.get_or_load("ghost@x") is None
    assert "ghost@x" not in cache


@pytest.mark.asyncio
async def test_miss_loads_from_store_and_continues(repo):
    first = ConversationCache(repo, _persona())
    await first.add_turn(CHAT, "user", "before restart")
    assert await first.save(CHAT) is True

    second = ConversationCache(repo, _persona())
    await second.add_turn(CHAT, "model", "after restart")
    rec = await second.get_or_load(CHAT)
    assert [t.text() for t in rec.contents] == ["before restart", "after restart"]


@pytest.mark.asyncio
async def test_loaded_record_is_clean_until_appended(repo):
    writer = ConversationCache(repo, _persona())
    await writer.add_turn(CHAT, "user", "hi")
    await writer.save(CHAT)

    reader = ConversationCache(repo, _persona())
    await reader.get_or_load(CHAT)
    assert await reader.dirty_ids() == []
    await reader.add_turn(CHAT, "model", "hello")
    assert await reader.dirty_ids() == [CHAT]


@pytest.mark.asyncio
async def test_media_parts(repo):
    cache = ConversationCache(repo, _persona())
    img = await cache.add_turn(CHAT, "user", "Sari: foto", media=b"\xff\xd8raw", media_kind=MEDIA_IMAGE)
    vid = await cache.add_turn(CHAT, "user", "Sari: video", media="https://files/v1", media_kind=MEDIA_VIDEO)

    assert img.parts[1] == InlineImagePart("image/jpeg", base64.b64encode(b"\xff\xd8raw").decode())
    assert vid.parts == (TextPart("Sari: video"), FileReferencePart("video/mp4", "https://files/v1"))


@pytest.mark.asyncio
async def test_bad_media_rejected(repo):
    cache = ConversationCache(repo, _persona())
    with pytest.raises(ValueError):
        await cache.add_turn(CHAT, "user", "x", media=b"..", media_kind="sticker")
    with pytest.raises(TypeError):
        await cache.add_turn(CHAT, "user", "x", media="not bytes", media_kind=MEDIA_IMAGE)
    with pytest.raises(ValueError):
        await cache.add_turn(CHAT, "narrator", "x")
    assert CHAT not in cache


@pytest.mark.asyncio
async def test_delete_evicts_memory_only(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "hi")
    await cache.save(CHAT)

    assert await cache.delete(CHAT) is True
    assert CHAT not in cache
    assert await cache.delete(CHAT) is False
    # still on disk, so a later read reloads it
    assert len((await cache.get_or_load(CHAT)).contents) == 1


@pytest.mark.asyncio
async def test_purge_removes_row_and_entry(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "hi")
    await cache.save(CHAT)

    assert await cache.purge(CHAT) is True
    assert CHAT not in cache
    assert await repo.load(CHAT) is None
    assert await cache.get_or_load(CHAT) is None


@pytest.mark.asyncio
async def test_concurrent_appends_all_land(repo):
    cache = ConversationCache(repo, _persona())
    await asyncio.gather(*(cache.add_turn(CHAT, "user", f"m{i}") for i in range(50)))
    rec = await cache.get_or_load(CHAT)
    assert sorted(t.text() for t in rec.contents) == sorted(f"m{i}" for i in range(50))
    assert rec.revision == 50


@pytest.mark.asyncio
async def test_concurrent_first_appends_share_one_record(repo):
    cache = ConversationCache(repo, _persona())
    await asyncio.gather(
        cache.add_turn(CHAT, "user", "a"),
        cache.add_turn(CHAT, "user", "b"),
    )
    assert len(cache) == 1
    assert len((await cache.get_or_load(CHAT)).contents) == 2


@pytest.mark.asyncio
async def test_save_only_dirty_skips_clean_records(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "hi")
    assert await cache.save(CHAT, only_dirty=True) is True
    assert await cache.save(CHAT, only_dirty=True) is False
    assert await cache.save("ghost@x") is False


@pytest.mark.asyncio
async def test_get_request_matches_stored_payload(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn(CHAT, "user", "hi")
    await cache.save(CHAT)
    assert await cache.get_request(CHAT) == (await repo.load(CHAT)).to_dict()


@pytest.mark.asyncio
async def test_storage_failure_on_miss_propagates():
    cache = ConversationCache(FailingRepo(), _persona())
    with pytest.raises(StorageError):
        await cache.add_turn(CHAT, "user", "hi")
    with pytest.raises(StorageError):
        await cache.get_or_load(CHAT)
    assert CHAT not in cache


@pytest.mark.asyncio
async def test_unreadable_history_starts_fresh(repo, chat_conn):
    await repo.ensure_table()
    with chat_conn:
        chat_conn.execute(
            "INSERT INTO chats (identifier, payload) VALUES (?, ?)", (CHAT, "garbage")
        )
    cache = ConversationCache(repo, _persona())
    assert await cache.get_or_load(CHAT) is None
    await cache.add_turn(CHAT, "user", "fresh")
    assert [t.text() for t in (await cache.get_or_load(CHAT)).contents] == ["fresh"]


@pytest.mark.asyncio
async def test_two_turn_conversation_survives_save_and_load(repo):
    cache = ConversationCache(repo, _persona())
    await cache.add_turn("62811@x", "user", "hi")
    await cache.add_turn("62811@x", "model", "hello")
    await cache.save("62811@x")

    loaded = await repo.load("62811@x")
    assert [t.role for t in loaded.contents] == ["user", "model"]
    assert [t.parts for t in loaded.contents] == [(TextPart("hi"),), (TextPart("hello"),)]
    assert loaded == await cache.get_or_load("62811@x")


@pytest.mark.asyncio
async def test_raw_video_bytes_never_become_a_uri(repo):
    cache = ConversationCache(repo, _persona())
    with pytest.raises(TypeError):
        await cache.add_turn(CHAT, "user", "x", media=b"\x00\x00\x00\x18ftypmp42\xff\xfe", media_kind=MEDIA_VIDEO)
    with pytest.raises(ValueError):
        await cache.add_turn(CHAT, "user", "x", media="", media_kind=MEDIA_VIDEO)
    assert CHAT not in cache


def test_mime_type_for_kinds(repo):
    cache = ConversationCache(repo, _persona())
    assert cache.mime_type_for(MEDIA_IMAGE) == "image/jpeg"
    assert cache.mime_type_for(MEDIA_VIDEO) == "video/mp4"
    with pytest.raises(ValueError):
        cache.mime_type_for("audio")


@pytest.mark.asyncio
async def test_key_locks_released_for_absent_identifiers(repo):
    cache = ConversationCache(repo, _persona())
    await cache.get_or_load("ghost@x")
    await cache.snapshot("ghost@x")
    await cache.purge("ghost@x")
    assert cache._key_locks == {}

    await cache.add_turn(CHAT, "user", "hi")
    assert set(cache._key_locks) == {CHAT}
    await cache.delete(CHAT)
    assert cache._key_locks == {}
    assert cache._lock_users == {}


@pytest.mark.asyncio
async def test_lock_kept_while_others_wait(repo):
    cache = ConversationCache(repo, _persona())
    await asyncio.gather(
        cache.purge(CHAT),
        cache.add_turn(CHAT, "user", "a"),
        cache.purge(CHAT),
        cache.add_turn(CHAT, "user", "b"),
    )
    rec = await cache.get_or_load(CHAT)
    # the final purge wins over "a"; "b" lands after it
    assert [t.text() for t in rec.contents] == ["b"]
    assert set(cache._key_locks) == {CHAT}
    assert cache._lock_users == {}
