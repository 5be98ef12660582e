import asyncio

import pytest

from trait_xp.system.token_minter import TokenMinter, tokens_for_xp


def test_token_conversion_step_function() -> None:
    assert [tokens_for_xp(x) for x in range(0, 10)] == [0] * 10
    assert [tokens_for_xp(x) for x in range(10, 20)] == [1] * 10
    assert tokens_for_xp(60) == 6
    assert tokens_for_xp(-5) == 0
    previous = 0
    for xp in range(0, 200):
        assert tokens_for_xp(xp) >= previous
        previous = tokens_for_xp(xp)


def test_custom_conversion_rate() -> None:
    assert tokens_for_xp(25, xp_per_token=5) == 5


@pytest.mark.asyncio
async def test_mint_zero_writes_nothing(db) -> None:
    minter = TokenMinter(db)
    assert await minter.mint("user-1", 0, {}) is None
    assert await db.get_wallet_balance("user-1") == 0
    assert await db.get_recent_mints("user-1") == []


@pytest.mark.asyncio
async def test_mint_records_event_and_balance(db) -> None:
    minter = TokenMinter(db)
    event = await minter.mint("user-1", 3, {"session_ids": ["s1"], "source_task_id": "t1"})
    assert event.id is not None
    assert await db.get_wallet_balance("user-1") == 3

    mints = await db.get_recent_mints("user-1")
    assert [m.amount for m in mints] == [3]
    assert mints[0].meta["source_task_id"] == "t1"


@pytest.mark.asyncio
async def test_concurrent_mints_all_land_in_wallet(db) -> None:
    minter = TokenMinter(db)
    await asyncio.gather(*(
        minter.mint("user-1", n, {"source_task_id": f"t{n}"}) for n in range(1, 11)
    ))
    assert await db.get_wallet_balance("user-1") == sum(range(1, 11))
    assert len(await db.get_recent_mints("user-1", limit=50)) == 10
