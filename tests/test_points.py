import asyncio

import pytest

from app.errors import NegativeBalance, UserNotFound
from app.services.points import increment_points


@pytest.mark.anyio
async def test_increment_returns_new_balance(database):
    async with database as sessions:
        user_id = await database.add_user("ada@example.com", points=50)

        async with sessions() as session:
            assert await increment_points(session, user_id, 200) == 250
            assert await increment_points(session, user_id, -100) == 150
            await session.commit()

        assert await database.balance(user_id) == 150


@pytest.mark.anyio
async def test_uncommitted_increment_is_discarded(database):
    async with database as sessions:
        user_id = await database.add_user("ada@example.com")

        async with sessions() as session:
            await increment_points(session, user_id, 500)
            await session.rollback()

        assert await database.balance(user_id) == 0


@pytest.mark.anyio
async def test_balance_never_goes_negative(database):
    async with database as sessions:
        user_id = await database.add_user("ada@example.com", points=30)

        async with sessions() as session:
            with pytest.raises(NegativeBalance):
                await increment_points(session, user_id, -31)
            await session.rollback()

        assert await database.balance(user_id) == 30


@pytest.mark.anyio
async def test_unknown_user(database):
    async with database as sessions:
        async with sessions() as session:
            with pytest.raises(UserNotFound):
                await increment_points(session, 9999, 10)


@pytest.mark.anyio
async def test_concurrent_increments_are_not_lost(database):
    async with database as sessions:
        user_id = await database.add_user("ada@example.com")

        async def _award(amount):
            async with sessions() as session:
                await increment_points(session, user_id, amount)
                await session.commit()

        await asyncio.gather(*(_award(10) for _ in range(10)))

        assert await database.balance(user_id) == 100
