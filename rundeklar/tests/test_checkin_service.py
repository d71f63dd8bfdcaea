"""
Tests for the check-in ledger.
"""

import pytest
from sqlalchemy import select

from rundeklar.database.models import CheckIn, Match, MatchPlayer, MatchResult, Sport
from rundeklar.services import checkin_service, match_service
from rundeklar.utils.errors import (
    AlreadyCheckedInError,
    InactivePlayerError,
    NoActiveSessionError,
    NotCheckedInError,
    UnknownPlayerError,
)


@pytest.mark.asyncio
async def test_admit_requires_active_session(ctx, make_player):
    player = await make_player("Anna")

    with pytest.raises(NoActiveSessionError):
        await checkin_service.admit(ctx, player.id)


@pytest.mark.asyncio
async def test_admit_and_list_in_arrival_order(active_ctx, make_player):
    bo = await make_player("Bo")
    anna = await make_player("Anna")

    await checkin_service.admit(active_ctx, bo.id, max_rounds=2, notes="leaves early")
    await checkin_service.admit(active_ctx, anna.id)

    rows = await checkin_service.list_active(active_ctx)
    assert [player.name for _, player in rows] == ["Bo", "Anna"]
    assert rows[0][0].max_rounds == 2
    assert rows[0][0].notes == "leaves early"


@pytest.mark.asyncio
async def test_admit_twice_reports_existing_row(active_ctx, make_player):
    player = await make_player("Anna")
    first = await checkin_service.admit(active_ctx, player.id)

    with pytest.raises(AlreadyCheckedInError) as exc_info:
        await checkin_service.admit(active_ctx, player.id)

    assert exc_info.value.check_in.id == first.id


@pytest.mark.asyncio
async def test_admit_race_is_reported_as_already_checked_in(active_ctx, make_player, monkeypatch):
    """A duplicate that slips past the pre-check hits the unique constraint."""
    player = await make_player("Anna")
    first = await checkin_service.admit(active_ctx, player.id)
    first_id = first.id
    await active_ctx.session.commit()

    original_find = checkin_service._find_check_in
    calls = {"count": 0}

    async def blind_first_lookup(ctx, session_id, player_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await original_find(ctx, session_id, player_id)

    monkeypatch.setattr(checkin_service, "_find_check_in", blind_first_lookup)

    with pytest.raises(AlreadyCheckedInError) as exc_info:
        await checkin_service.admit(active_ctx, player.id)

    assert exc_info.value.check_in.id == first_id
    rows = (await active_ctx.session.execute(select(CheckIn))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_admit_unknown_and_inactive_players(active_ctx, make_player):
    inactive = await make_player("Sleepy", active=False)

    with pytest.raises(UnknownPlayerError):
        await checkin_service.admit(active_ctx, 9999)
    with pytest.raises(InactivePlayerError):
        await checkin_service.admit(active_ctx, inactive.id)


@pytest.mark.asyncio
async def test_admit_other_tenants_player_is_unknown(active_ctx, make_player):
    foreign = await make_player("Foreign", tenant_id="club-b")

    with pytest.raises(UnknownPlayerError):
        await checkin_service.admit(active_ctx, foreign.id)


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(active_ctx, make_player):
    player = await make_player("Anna")
    await checkin_service.admit(active_ctx, player.id, max_rounds=3, notes="hello")

    updated = await checkin_service.update(active_ctx, player.id, {"notes": None})

    assert updated.notes is None
    assert updated.max_rounds == 3

    with pytest.raises(NotCheckedInError):
        await checkin_service.update(active_ctx, 9999, {"max_rounds": 1})


@pytest.mark.asyncio
async def test_remove_is_idempotent(active_ctx, make_player):
    player = await make_player("Anna")
    await checkin_service.admit(active_ctx, player.id)

    assert await checkin_service.remove(active_ctx, player.id) is True
    assert await checkin_service.remove(active_ctx, player.id) is False
    assert await checkin_service.list_active(active_ctx) == []


@pytest.mark.asyncio
async def test_remove_releases_unplayed_slots_and_keeps_played(active_ctx, make_player):
    players = [await make_player(f"P{i}", 50) for i in range(4)]
    for player in players:
        await checkin_service.admit(active_ctx, player.id)

    await match_service.place(active_ctx, players[0].id, 1, 1, round_number=1)
    await match_service.place(active_ctx, players[1].id, 1, 2, round_number=1)
    await match_service.place(active_ctx, players[0].id, 2, 1, round_number=2)
    await match_service.place(active_ctx, players[2].id, 2, 2, round_number=2)

    round_one = (await active_ctx.session.execute(select(Match).where(Match.round == 1))).scalar_one()
    active_ctx.session.add(
        MatchResult(
            tenant_id=active_ctx.tenant_id,
            match_id=round_one.id,
            sport=Sport.BADMINTON,
            score_data={"sets": [], "winner": "team1"},
            winner_team="team1",
        )
    )
    await active_ctx.session.flush()

    await checkin_service.remove(active_ctx, players[0].id)

    remaining = (
        await active_ctx.session.execute(
            select(MatchPlayer.player_id).where(MatchPlayer.player_id == players[0].id)
        )
    ).scalars().all()
    # Played round-one slot survives, unplayed round-two slot is released
    assert len(remaining) == 1


@pytest.mark.asyncio
async def test_remove_deletes_emptied_match(active_ctx, make_player):
    player = await make_player("Solo")
    await checkin_service.admit(active_ctx, player.id)
    await match_service.place(active_ctx, player.id, 3, 0)

    await checkin_service.remove(active_ctx, player.id)

    matches = (await active_ctx.session.execute(select(Match))).scalars().all()
    assert matches == []
