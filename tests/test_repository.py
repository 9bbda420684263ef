"""
Tests for the SQLAlchemy-backed repository primitives.
"""

import pytest

from wechat_bridge.infrastructure.repository import DuplicateRecordError, Query, eq, exists, gt


class TestSQLAlchemyRepository:
    """Tests for SQLAlchemyRepository query primitives."""

    @pytest.mark.asyncio
    async def test_filters_by_equality_and_absence(self, message_repository, add_turn):
        await add_turn(session_id="u1", question="live", minutes_ago=2)
        await add_turn(session_id="u1", question="gone", minutes_ago=1, deleted=True)
        await add_turn(session_id="u2", question="other", minutes_ago=1)

        rows = await message_repository.find(
            Query().where(eq("session_id", "u1"), exists("deleted_at", False))
        )

        assert [row.question for row in rows] == ["live"]

    @pytest.mark.asyncio
    async def test_exists_matches_set_fields(self, message_repository, add_turn):
        await add_turn(question="live", minutes_ago=2)
        await add_turn(question="gone", minutes_ago=1, deleted=True)

        rows = await message_repository.find(Query().where(exists("deleted_at")))

        assert [row.question for row in rows] == ["gone"]

    @pytest.mark.asyncio
    async def test_greater_than_sort_and_limit(self, message_repository, add_turn):
        first = await add_turn(question="q1", minutes_ago=3)
        await add_turn(question="q2", minutes_ago=2)
        await add_turn(question="q3", minutes_ago=1)

        query = (
            Query()
            .where(gt("created_at", first.created_at))
            .sort("created_at", descending=True)
            .take(1)
        )
        rows = await message_repository.find(query)

        assert [row.question for row in rows] == ["q3"]

    @pytest.mark.asyncio
    async def test_ascending_sort(self, message_repository, add_turn):
        await add_turn(question="q2", minutes_ago=1)
        await add_turn(question="q1", minutes_ago=2)

        rows = await message_repository.find(Query().sort("created_at"))

        assert [row.question for row in rows] == ["q1", "q2"]

    @pytest.mark.asyncio
    async def test_find_one_returns_none_when_empty(self, message_repository):
        assert await message_repository.find_one(Query().where(eq("msgid", "missing"))) is None

    @pytest.mark.asyncio
    async def test_update_returns_changed_rows(self, message_repository, add_turn):
        await add_turn(session_id="u1", minutes_ago=2)
        await add_turn(session_id="u1", minutes_ago=1)

        changed = await message_repository.update(
            Query().where(eq("session_id", "u1")), {"answer": "redacted"}
        )

        assert changed == 2
        rows = await message_repository.find(Query().where(eq("answer", "redacted")))
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_insert_duplicate_key_raises(self, event_repository):
        await event_repository.insert({"event_id": "1001", "message": {"MsgId": "1001"}})

        with pytest.raises(DuplicateRecordError):
            await event_repository.insert({"event_id": "1001", "message": {"MsgId": "1001"}})

        assert await event_repository.count(Query()) == 1

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self, message_repository):
        with pytest.raises(ValueError):
            await message_repository.find(Query().where(eq("nope", 1)))

    def test_query_builder_is_immutable(self):
        base = Query()
        narrowed = base.where(eq("session_id", "u1")).sort("created_at", descending=True).take(5)

        assert base.conditions == ()
        assert base.limit is None
        assert narrowed.limit == 5
        assert narrowed.order_by == (("created_at", True),)
