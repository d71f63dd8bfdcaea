"""
Tests for the round planner (pure, no database).
"""

from rundeklar.database.models import PlayerCategory
from rundeklar.services.round_planner import (
    HistorySlot,
    MatchupHistory,
    apply_round_caps,
    plan_round,
)
from rundeklar.services.skill import MatchKind, SkillProfile, team_total_gap


def _profile(player_id, skill=None, category=PlayerCategory.EITHER):
    return SkillProfile(
        player_id=player_id,
        name=f"P{player_id}",
        level_single=skill,
        level_double=skill,
        category=category,
    )


def _history(matches, before_round=2):
    """matches: list of (match_id, round, [player ids in slot order 0..])"""
    slots = [
        HistorySlot(match_id=match_id, round=round_number, player_id=player_id, slot=slot)
        for match_id, round_number, player_ids in matches
        for slot, player_id in enumerate(player_ids)
    ]
    return MatchupHistory.from_slots(slots, before_round=before_round)


def _teams(planned):
    ids = planned.player_ids
    return {frozenset(ids[:2]), frozenset(ids[2:])}


def test_basic_doubles_fill():
    players = [_profile(i, skill) for i, skill in enumerate([10, 20, 30, 40, 50, 60, 70, 80], start=1)]
    by_id = {p.player_id: p for p in players}

    plan = plan_round(players, [1, 2])

    assert len(plan.matches) == 2
    assert plan.benched == []
    for planned in plan.matches:
        assert planned.kind == MatchKind.DOUBLES
        team1 = tuple(by_id[i] for i in planned.player_ids[:2])
        team2 = tuple(by_id[i] for i in planned.player_ids[2:])
        assert team_total_gap(team1, team2, MatchKind.DOUBLES) <= 20


def test_odd_player_count_benches_strongest():
    a, b, c, d, e = [_profile(i, skill) for i, skill in enumerate([10, 20, 30, 40, 50], start=1)]

    plan = plan_round([e, d, c, b, a], [1, 2, 3])

    assert len(plan.matches) == 1
    assert _teams(plan.matches[0]) == {frozenset({1, 4}), frozenset({2, 3})}
    assert plan.benched == [5]


def test_doubles_only_player_always_plays():
    either = [_profile(i, 50) for i in range(1, 5)]
    x = _profile(5, 50, PlayerCategory.DOUBLES_ONLY)

    plan = plan_round(either + [x], [1, 2])

    assert len(plan.matches) == 1
    match = plan.matches[0]
    assert match.kind == MatchKind.DOUBLES
    assert 5 in match.player_ids
    assert len(plan.benched) == 1
    assert plan.benched[0] in {1, 2, 3, 4}


def test_round_two_avoids_repeat_partners():
    players = [_profile(i, 50) for i in range(1, 5)]
    history = _history([(100, 1, [1, 2, 3, 4])])

    plan = plan_round(players, [1], history, round_number=2)

    assert len(plan.matches) == 1
    assert frozenset({1, 2}) not in _teams(plan.matches[0])
    assert frozenset({3, 4}) not in _teams(plan.matches[0])


def test_round_one_ignores_history_penalties():
    players = [_profile(i, 50) for i in range(1, 5)]
    history = _history([(100, 1, [1, 2, 3, 4])])

    plan = plan_round(players, [1], history, round_number=1)

    # Without penalties all splits tie and the first one wins
    assert _teams(plan.matches[0]) == {frozenset({1, 2}), frozenset({3, 4})}


def test_max_rounds_cap_excludes_player():
    q = _profile(1, 50)
    others = [_profile(i, 50) for i in range(2, 6)]
    history = _history([(100, 1, [1, 2, 3, 4])])

    eligible, capped = apply_round_caps([q] + others, {1: 1, 2: None, 3: 3}, history)

    assert capped == [1]
    assert [p.player_id for p in eligible] == [2, 3, 4, 5]


def test_doubles_only_never_in_singles():
    players = [
        _profile(1, 50, PlayerCategory.DOUBLES_ONLY),
        _profile(2, 50, PlayerCategory.SINGLES_ONLY),
        _profile(3, 50, PlayerCategory.SINGLES_ONLY),
    ]

    plan = plan_round(players, [1, 2])

    assert len(plan.matches) == 1
    assert plan.matches[0].kind == MatchKind.SINGLES
    assert set(plan.matches[0].player_ids) == {2, 3}
    assert plan.benched == [1]


def test_singles_uses_slots_one_and_two():
    plan = plan_round([_profile(1, 40), _profile(2, 45)], [3])

    assert plan.matches[0].court_idx == 3
    assert plan.matches[0].slot_assignments() == [(1, 1), (2, 2)]


def test_singles_only_players_do_not_fill_plain_doubles():
    players = [
        _profile(1, 50),
        _profile(2, 50),
        _profile(3, 50, PlayerCategory.SINGLES_ONLY),
        _profile(4, 50, PlayerCategory.SINGLES_ONLY),
    ]

    plan = plan_round(players, [1, 2])

    assert [m.kind for m in plan.matches] == [MatchKind.SINGLES, MatchKind.SINGLES]
    assert plan.benched == []


def test_co_opts_existing_singles_for_doubles_only_players():
    newcomers = [
        _profile(5, 50, PlayerCategory.DOUBLES_ONLY),
        _profile(6, 50, PlayerCategory.DOUBLES_ONLY),
    ]
    existing = [(2, [_profile(1, 50), _profile(2, 50)])]

    plan = plan_round(newcomers, [], existing_singles=existing)

    assert plan.co_opted_courts == [2]
    assert len(plan.matches) == 1
    assert plan.matches[0].court_idx == 2
    assert set(plan.matches[0].player_ids) == {1, 2, 5, 6}
    assert plan.benched == []


def test_co_opt_needs_four_players():
    plan = plan_round(
        [_profile(5, 50, PlayerCategory.DOUBLES_ONLY)],
        [],
        existing_singles=[(1, [_profile(1, 50), _profile(2, 50)])],
    )

    assert plan.matches == []
    assert plan.co_opted_courts == []
    assert plan.benched == [5]


def test_plan_is_deterministic():
    players = [_profile(i, (i * 7) % 60) for i in range(1, 12)]
    history = _history([(100, 1, [1, 2, 3, 4]), (101, 1, [5, 6, 7, 8])])

    first = plan_round(players, [1, 2, 3], history, round_number=2)
    second = plan_round(list(reversed(players)), [3, 2, 1], history, round_number=2)

    assert first == second


def test_inconsistent_history_disables_penalties():
    slots = [
        HistorySlot(match_id=100, round=1, player_id=1, slot=0),
        HistorySlot(match_id=100, round=1, player_id=2, slot=0),  # Duplicate slot
        HistorySlot(match_id=100, round=1, player_id=3, slot=2),
    ]
    history = MatchupHistory.from_slots(slots, before_round=2)

    assert history.consistent is False
    assert history.partners == set()
    assert history.matches_played[1] == 1

    plan = plan_round([_profile(i, 50) for i in range(1, 5)], [1], history, round_number=2)
    assert len(plan.matches) == 1


def test_fewest_matches_played_go_first():
    players = [_profile(i, 50) for i in range(1, 6)]
    history = _history([(100, 1, [1, 2, 3, 4])])

    plan = plan_round(players, [1], history, round_number=2)

    assert 5 in plan.matches[0].player_ids
    assert len(plan.benched) == 1


def test_unrated_players_are_still_placed():
    players = [_profile(i) for i in range(1, 5)]

    plan = plan_round(players, [1])

    assert len(plan.matches) == 1
    assert sorted(plan.matches[0].player_ids) == [1, 2, 3, 4]


def test_full_doubles_only_group_does_not_break_up_singles():
    waiting = [_profile(i, 50, PlayerCategory.DOUBLES_ONLY) for i in range(1, 5)]
    existing = [(3, [_profile(10, 50), _profile(11, 50)])]

    plan = plan_round(waiting, [], existing_singles=existing)

    assert plan.matches == []
    assert plan.co_opted_courts == []
    assert plan.benched == [1, 2, 3, 4]


def test_co_opt_keeps_singles_players_on_court():
    waiting = [_profile(i, 50, PlayerCategory.DOUBLES_ONLY) for i in range(1, 4)]
    existing = [(3, [_profile(10, 50), _profile(11, 50)])]

    plan = plan_round(waiting, [], existing_singles=existing)

    assert plan.co_opted_courts == [3]
    (match,) = plan.matches
    assert match.kind == MatchKind.DOUBLES
    assert {10, 11} <= set(match.player_ids)
    assert plan.benched == [3]


def test_split_anchors_on_lowest_skill_player():
    strong = _profile(1, 90, PlayerCategory.DOUBLES_ONLY)
    others = [_profile(2, 10), _profile(3, 20), _profile(4, 80)]

    plan = plan_round([strong] + others, [1])

    (match,) = plan.matches
    assert match.player_ids[0] == 2
    assert _teams(match) == {frozenset({2, 1}), frozenset({3, 4})}
