"""Tests for the ride projection store."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import NOW
from ride_service import queries


class TestCrud:
    @pytest.mark.asyncio
    async def test_create_and_get(self, session, clock, make_projection, sunny):
        projection = make_projection(weather=sunny)
        created = await queries.create_projection(session, projection, clock)
        assert created.age_in_days == 10

        loaded = await queries.get_projection(session, projection.ride_id, clock)
        assert loaded is not None
        assert loaded.ride_id == projection.ride_id
        assert loaded.distance == Decimal("10.00")
        assert loaded.weather == sunny
        assert loaded.created_timestamp == projection.created_timestamp
        assert loaded.created_timestamp.tzinfo is not None
        assert loaded.modified_timestamp is None
        assert loaded.age_in_days == 10

    @pytest.mark.asyncio
    async def test_get_missing(self, session, clock):
        assert await queries.get_projection(session, uuid4(), clock) is None

    @pytest.mark.asyncio
    async def test_update_is_last_write_wins(self, session, clock, make_projection):
        projection = make_projection()
        await queries.create_projection(session, projection, clock)

        first = projection.model_copy(update={"ride_name": "First", "modified_timestamp": NOW})
        second = projection.model_copy(update={"ride_name": "Second", "modified_timestamp": NOW})
        await queries.update_projection(session, first, clock)
        await queries.update_projection(session, second, clock)

        loaded = await queries.get_projection(session, projection.ride_id, clock)
        assert loaded.ride_name == "Second"
        assert loaded.modified_timestamp == NOW

    @pytest.mark.asyncio
    async def test_delete(self, session, clock, make_projection):
        projection = make_projection()
        await queries.create_projection(session, projection, clock)
        await queries.delete_projection(session, projection.ride_id)
        assert await queries.get_projection(session, projection.ride_id, clock) is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, session):
        await queries.delete_projection(session, uuid4())


class TestListing:
    @pytest.mark.asyncio
    async def test_newest_first_and_paginated(self, session, clock, make_projection):
        rides = [
            make_projection(ride_name=f"ride {i}", created_timestamp=NOW - timedelta(days=i))
            for i in range(5)
        ]
        for ride in rides:
            await queries.create_projection(session, ride, clock)

        page1 = await queries.list_projections(session, "user-1", 1, 2, clock)
        page2 = await queries.list_projections(session, "user-1", 2, 2, clock)
        page3 = await queries.list_projections(session, "user-1", 3, 2, clock)

        assert [r.ride_name for r in page1] == ["ride 0", "ride 1"]
        assert [r.ride_name for r in page2] == ["ride 2", "ride 3"]
        assert [r.ride_name for r in page3] == ["ride 4"]
        assert [r.age_in_days for r in page1] == [0, 1]

    @pytest.mark.asyncio
    async def test_excludes_inactive_and_other_users(self, session, clock, make_projection):
        await queries.create_projection(session, make_projection(ride_name="keep"), clock)
        await queries.create_projection(
            session, make_projection(deletion_status="marked_for_deletion"), clock
        )
        await queries.create_projection(session, make_projection(user_id="user-2"), clock)

        rides = await queries.list_projections(session, "user-1", clock=clock)
        assert [r.ride_name for r in rides] == ["keep"]
        assert await queries.count_projections(session, "user-1") == 1
        assert await queries.count_projections(session, "user-2") == 1
        assert await queries.count_projections(session, "nobody") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_number, page_size", [(0, 10), (1, 0)])
    async def test_invalid_paging(self, session, page_number, page_size):
        with pytest.raises(ValueError):
            await queries.list_projections(session, "user-1", page_number, page_size)
