"""Unit tests for SqlAlchemyContentStore.

Tests cover:
- transaction() takes sorted, de-duplicated advisory locks then commits
- transaction() rolls back and wraps SQLAlchemy errors
- transaction() rolls back and re-raises foreign errors unchanged
- lookups map ORM rows to StoredContent
- driver errors surface as DeduplicationStoreError with the operation name
- attach_to_group() demotes then promotes, or only demotes
- set_group_primary() rejects records outside the group
- insert() adds a fully populated row and flushes
- update_content() raises when the record does not exist
- list_duplicate_groups() maps aggregate rows
- open_content_store() binds a store to a private engine and disposes it

All tests mock the SQLAlchemy AsyncSession.  No live database is required.
"""

from __future__ import annotations

import uuid
from collections import namedtuple
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from content_pipeline.config.platforms import Platform
from content_pipeline.core import database
from content_pipeline.core.exceptions import DeduplicationStoreError
from content_pipeline.core.models.content import ContentRecord
from content_pipeline.core.repository import SqlAlchemyContentStore
from content_pipeline.core.schemas.content import (
    DeduplicationResult,
    MediaType,
    NormalizedContent,
    StoredContent,
)

_PUBLISHED = datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_session(mock_result: MagicMock | None = None) -> MagicMock:
    """Return a mock AsyncSession whose execute() resolves to *mock_result*."""
    session = MagicMock()
    session.execute = AsyncMock(return_value=mock_result or MagicMock())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    return session


def _row(**overrides: object) -> ContentRecord:
    fields: dict[str, object] = {
        "id": uuid.uuid4(),
        "creator_id": "creator-1",
        "platform": "twitter",
        "platform_content_id": "tw-1",
        "description": "hello dunes",
        "media_urls": [{"url": "https://pbs.twimg.com/a.jpg", "type": "image"}],
        "engagement_metrics": {"likes": 3},
        "content_hash": "a" * 64,
        "is_primary": True,
        "processing_status": "processed",
        "published_at": _PUBLISHED,
    }
    fields.update(overrides)
    return ContentRecord(**fields)


def _operational_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransaction:
    async def test_locks_are_sorted_and_unique(self) -> None:
        session = _make_session()
        store = SqlAlchemyContentStore(session)

        async with store.transaction(["hash:b", "creator:a", "hash:b"]):
            pass

        keys = [call.args[1]["key"] for call in session.execute.await_args_list]
        assert keys == ["creator:a", "hash:b"]
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    async def test_sqlalchemy_errors_roll_back_and_wrap(self) -> None:
        session = _make_session()
        store = SqlAlchemyContentStore(session)

        with pytest.raises(DeduplicationStoreError) as exc_info:
            async with store.transaction(["hash:x"]):
                raise _operational_error()

        assert exc_info.value.operation == "transaction"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    async def test_foreign_errors_roll_back_and_propagate(self) -> None:
        session = _make_session()
        store = SqlAlchemyContentStore(session)

        with pytest.raises(KeyError):
            async with store.transaction():
                raise KeyError("boom")

        session.rollback.assert_awaited_once()

    async def test_failed_commit_is_wrapped(self) -> None:
        session = _make_session()
        session.commit.side_effect = _operational_error()
        store = SqlAlchemyContentStore(session)

        with pytest.raises(DeduplicationStoreError):
            async with store.transaction():
                pass

        session.rollback.assert_awaited_once()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    async def test_find_by_hash_maps_rows(self) -> None:
        row = _row()
        mock_result = MagicMock()
        mock_result.scalars.return_value.all.return_value = [row]
        store = SqlAlchemyContentStore(_make_session(mock_result))

        records = await store.find_by_hash("a" * 64)

        assert len(records) == 1
        record = records[0]
        assert isinstance(record, StoredContent)
        assert record.id == row.id
        assert record.media_urls[0].type is MediaType.IMAGE
        assert record.engagement_metrics == {"likes": 3}

    async def test_null_json_columns_become_empty(self) -> None:
        mock_result = MagicMock()
        mock_result.scalars.return_value.all.return_value = [
            _row(media_urls=None, engagement_metrics=None)
        ]
        store = SqlAlchemyContentStore(_make_session(mock_result))

        (record,) = await store.find_group_members("g1")

        assert record.media_urls == []
        assert record.engagement_metrics == {}

    async def test_find_by_platform_id_returns_none(self) -> None:
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        store = SqlAlchemyContentStore(_make_session(mock_result))

        assert await store.find_by_platform_id("creator-1", "rss", "missing") is None

    async def test_driver_errors_are_wrapped(self) -> None:
        session = _make_session()
        session.execute.side_effect = _operational_error()
        store = SqlAlchemyContentStore(session)

        with pytest.raises(DeduplicationStoreError) as exc_info:
            await store.find_recent_by_creator("creator-1", ["twitter"], _PUBLISHED)

        assert exc_info.value.operation == "find_recent_by_creator"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    async def test_list_duplicate_groups_maps_rows(self) -> None:
        Row = namedtuple("Row", ["duplicate_group_id", "primary_content_id", "member_count"])
        primary = uuid.uuid4()
        mock_result = MagicMock()
        mock_result.all.return_value = [Row("g1", str(primary), 3), Row("g2", None, 2)]
        store = SqlAlchemyContentStore(_make_session(mock_result))

        groups = await store.list_duplicate_groups(limit=10)

        assert [g.duplicate_group_id for g in groups] == ["g1", "g2"]
        assert groups[0].primary_content_id == primary
        assert groups[0].member_count == 3
        assert groups[1].primary_content_id is None


# ---------------------------------------------------------------------------
# Group writes
# ---------------------------------------------------------------------------


class TestGroupWrites:
    async def test_attach_with_primary_demotes_then_promotes(self) -> None:
        mock_result = MagicMock()
        mock_result.rowcount = 1
        session = _make_session(mock_result)
        store = SqlAlchemyContentStore(session)

        written = await store.attach_to_group("g1", [uuid.uuid4()], primary_id=uuid.uuid4())

        assert written == 1
        assert session.execute.await_count == 2

    async def test_attach_without_primary_only_demotes(self) -> None:
        mock_result = MagicMock()
        mock_result.rowcount = 2
        session = _make_session(mock_result)
        store = SqlAlchemyContentStore(session)

        written = await store.attach_to_group("g1", [uuid.uuid4(), uuid.uuid4()])

        assert written == 2
        session.execute.assert_awaited_once()

    async def test_set_group_primary_rejects_non_member(self) -> None:
        mock_result = MagicMock()
        mock_result.rowcount = 0
        store = SqlAlchemyContentStore(_make_session(mock_result))

        with pytest.raises(DeduplicationStoreError) as exc_info:
            await store.set_group_primary("g1", uuid.uuid4())

        assert exc_info.value.operation == "set_group_primary"


# ---------------------------------------------------------------------------
# Record writes
# ---------------------------------------------------------------------------


class TestRecordWrites:
    async def test_insert_adds_row_with_dedup_fields(self) -> None:
        session = _make_session()
        store = SqlAlchemyContentStore(session)
        record = NormalizedContent(
            creator_id="creator-1",
            platform=Platform.TWITTER,
            platform_content_id="tw-1",
            description="hello dunes",
            media_urls=[{"url": "https://pbs.twimg.com/a.jpg", "type": "image"}],
            engagement_metrics={"likes": 3},
            word_count=2,
            reading_time_minutes=1,
            published_at=_PUBLISHED,
        )
        dedup = DeduplicationResult(
            content_hash="b" * 64, duplicate_group_id="g1", is_primary=False
        )
        record_id = uuid.uuid4()

        stored = await store.insert(record, dedup, record_id)

        session.add.assert_called_once()
        row = session.add.call_args.args[0]
        assert isinstance(row, ContentRecord)
        assert row.id == record_id
        assert row.platform == "twitter"
        assert row.media_urls == [{"url": "https://pbs.twimg.com/a.jpg", "type": "image"}]
        assert row.duplicate_group_id == "g1"
        assert row.is_primary is False
        assert row.processing_status == "processed"
        session.flush.assert_awaited_once()
        assert stored.content_hash == "b" * 64

    async def test_insert_flush_failure_is_wrapped(self) -> None:
        session = _make_session()
        session.flush.side_effect = _operational_error()
        store = SqlAlchemyContentStore(session)
        record = NormalizedContent(
            creator_id="creator-1",
            platform=Platform.RSS,
            platform_content_id="a",
            published_at=_PUBLISHED,
        )

        with pytest.raises(DeduplicationStoreError) as exc_info:
            await store.insert(record, DeduplicationResult(content_hash="c" * 64))

        assert exc_info.value.operation == "insert"

    async def test_update_content_missing_record(self) -> None:
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        store = SqlAlchemyContentStore(_make_session(mock_result))
        record = NormalizedContent(
            creator_id="creator-1",
            platform=Platform.RSS,
            platform_content_id="a",
            published_at=_PUBLISHED,
        )

        with pytest.raises(DeduplicationStoreError) as exc_info:
            await store.update_content(uuid.uuid4(), record)

        assert exc_info.value.operation == "update_content"


class TestOpenContentStore:
    async def test_yields_store_and_disposes_engine(self) -> None:
        engine = MagicMock()
        engine.dispose = AsyncMock()
        session = _make_session()
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = session

        with (
            patch.object(database, "build_engine", return_value=engine) as build,
            patch.object(database, "async_sessionmaker", return_value=factory),
        ):
            async with database.open_content_store("postgresql+asyncpg://u:p@db/x") as store:
                assert isinstance(store, SqlAlchemyContentStore)

        build.assert_called_once_with("postgresql+asyncpg://u:p@db/x")
        engine.dispose.assert_awaited_once()

    async def test_engine_disposed_when_work_fails(self) -> None:
        engine = MagicMock()
        engine.dispose = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = _make_session()

        with (
            patch.object(database, "build_engine", return_value=engine),
            patch.object(database, "async_sessionmaker", return_value=factory),
            pytest.raises(RuntimeError),
        ):
            async with database.open_content_store("postgresql+asyncpg://u:p@db/x"):
                raise RuntimeError("boom")

        engine.dispose.assert_awaited_once()
