"""
Tests for the match lifecycle: creation, result recording, history and the
queue/stats side effects of resolving a match.
"""

import pytest
from sqlalchemy import select

from smashqueue.database.models import MatchResult, MatchScore, QueueEntry, QueueEntryStatus
from smashqueue.services.errors import (
    InvalidScoreError,
    InvalidTeamError,
    MatchAlreadyResolvedError,
    MatchNotFoundError,
)
from smashqueue.services.match_service import determine_result, validate_teams


def games(*pairs):
    return [
        {"game": number, "team1_score": team1, "team2_score": team2}
        for number, (team1, team2) in enumerate(pairs, start=1)
    ]


async def queue_statuses(session):
    result = await session.execute(
        select(QueueEntry.participant_id, QueueEntry.status, QueueEntry.position).order_by(
            QueueEntry.participant_id
        )
    )
    return {row.participant_id: (QueueEntryStatus(row.status).value, row.position) for row in result.all()}


# ============================================================================
# Pure helpers
# ============================================================================

@pytest.mark.parametrize(
    "team1,team2",
    [
        ([], [1]),
        ([1], []),
        ([1, 2, 3], [4]),
        ([1, 1], [2]),
        ([1, 2], [2, 3]),
    ],
)
def test_validate_teams_rejects(team1, team2):
    with pytest.raises(InvalidTeamError):
        validate_teams(team1, team2)


def test_validate_teams_accepts_singles_and_doubles():
    validate_teams([1], [2])
    validate_teams([1, 2], [3, 4])
    validate_teams([1, 2], [3])


@pytest.mark.parametrize(
    "scores,expected",
    [
        (games((21, 15), (19, 21), (21, 18)), MatchResult.TEAM1),
        (games((10, 21), (15, 21)), MatchResult.TEAM2),
        (games((21, 19), (19, 21)), MatchResult.DRAW),
        (games((20, 20)), MatchResult.DRAW),
        ([], MatchResult.DRAW),
    ],
)
def test_determine_result(scores, expected):
    assert determine_result(scores) == expected


# ============================================================================
# Create
# ============================================================================

@pytest.mark.asyncio
async def test_create_match(queue_engine):
    match = await queue_engine.create_match("Court 3", [1, 2], [3, 4])

    assert match["id"] > 0
    assert match["court"] == "Court 3"
    assert match["team1"] == [1, 2]
    assert match["team2"] == [3, 4]
    assert match["result"] == "pending"
    assert match["scores"] == []
    assert match["started_at"] is not None
    assert match["ended_at"] is None


@pytest.mark.asyncio
async def test_create_match_picks_next_available_court(queue_engine):
    first = await queue_engine.create_match(None, [1], [2])
    second = await queue_engine.create_match("", [3], [4])

    assert first["court"] == "Court 1"
    assert second["court"] == "Court 2"


@pytest.mark.asyncio
async def test_create_match_rejects_overlapping_teams(queue_engine):
    with pytest.raises(InvalidTeamError):
        await queue_engine.create_match("Court 1", [1, 2], [2, 3])

    assert await queue_engine.active_matches() == []


@pytest.mark.asyncio
async def test_create_match_moves_called_players_to_playing(queue_engine, db_session):
    for participant_id in (1, 2, 3, 4, 5):
        await queue_engine.join(participant_id)
    await queue_engine.call_next(4)

    await queue_engine.create_match("Court 1", [1, 2], [3, 4])

    statuses = await queue_statuses(db_session)
    assert [statuses[p][0] for p in (1, 2, 3, 4)] == ["playing"] * 4
    assert statuses[5] == ("waiting", 1)


@pytest.mark.asyncio
async def test_create_match_with_waiting_player_renumbers_line(queue_engine, db_session):
    for participant_id in (1, 2, 3, 4):
        await queue_engine.join(participant_id)

    await queue_engine.create_match("Court 1", [2], [3])

    statuses = await queue_statuses(db_session)
    assert statuses[2][0] == "playing"
    assert statuses[3][0] == "playing"
    assert statuses[1] == ("waiting", 1)
    assert statuses[4] == ("waiting", 2)


@pytest.mark.asyncio
async def test_create_match_with_unqueued_players(queue_engine, db_session):
    match = await queue_engine.create_match("Court 1", [7], [8])

    assert match["result"] == "pending"
    assert await queue_statuses(db_session) == {}


# ============================================================================
# Record result
# ============================================================================

@pytest.mark.asyncio
async def test_record_result_team1_wins(queue_engine, db_session):
    await queue_engine.join(1)
    await queue_engine.join(2)
    await queue_engine.call_next(2)
    match = await queue_engine.create_match("Court 1", [1], [2])

    resolved = await queue_engine.record_result(
        match["id"], games((21, 15), (19, 21), (21, 18))
    )

    assert resolved["result"] == "team1"
    assert resolved["ended_at"] is not None
    assert [score["game"] for score in resolved["scores"]] == [1, 2, 3]
    assert resolved["scores"][1] == {"game": 2, "team1_score": 19, "team2_score": 21}

    winner = await queue_engine.get_stats(1)
    loser = await queue_engine.get_stats(2)
    assert winner["wins"] == 1
    assert winner["current_streak"] == 1
    assert winner["best_streak"] == 1
    assert loser["losses"] == 1
    assert loser["current_streak"] == -1

    # Both players are released from the queue
    assert await queue_statuses(db_session) == {}


@pytest.mark.asyncio
async def test_record_result_doubles_updates_all_four(queue_engine):
    match = await queue_engine.create_match("Court 2", [1, 2], [3, 4])

    await queue_engine.record_result(match["id"], games((15, 21), (18, 21)))

    for participant_id in (1, 2):
        stats = await queue_engine.get_stats(participant_id)
        assert (stats["wins"], stats["losses"]) == (0, 1)
    for participant_id in (3, 4):
        stats = await queue_engine.get_stats(participant_id)
        assert (stats["wins"], stats["losses"]) == (1, 0)
        assert stats["skill_points"] == 15


@pytest.mark.asyncio
async def test_record_result_draw_leaves_stats_untouched(queue_engine):
    await queue_engine.record_outcome(1, True)
    match = await queue_engine.create_match("Court 1", [1], [2])

    resolved = await queue_engine.record_result(match["id"], games((21, 19), (19, 21)))

    assert resolved["result"] == "draw"
    one = await queue_engine.get_stats(1)
    two = await queue_engine.get_stats(2)
    assert (one["total_matches"], one["current_streak"]) == (1, 1)
    assert two["total_matches"] == 0


@pytest.mark.asyncio
async def test_record_result_draw_still_releases_players(queue_engine, db_session):
    await queue_engine.join(1)
    await queue_engine.join(2)
    match = await queue_engine.create_match("Court 1", [1], [2])

    await queue_engine.record_result(match["id"], [])

    assert await queue_statuses(db_session) == {}


@pytest.mark.asyncio
async def test_record_result_twice_fails(queue_engine):
    match = await queue_engine.create_match("Court 1", [1], [2])
    resolved = await queue_engine.record_result(match["id"], games((21, 10)))
    winner_before = await queue_engine.get_stats(1)
    loser_before = await queue_engine.get_stats(2)

    with pytest.raises(MatchAlreadyResolvedError):
        await queue_engine.record_result(match["id"], games((10, 21), (12, 21)))

    completed = await queue_engine.completed_matches()
    assert len(completed) == 1
    assert completed[0]["result"] == "team1"
    assert completed[0]["scores"] == [{"game": 1, "team1_score": 21, "team2_score": 10}]
    assert completed[0]["ended_at"] == resolved["ended_at"]

    assert await queue_engine.get_stats(1) == winner_before
    assert await queue_engine.get_stats(2) == loser_before
    assert (winner_before["wins"], loser_before["losses"]) == (1, 1)


@pytest.mark.asyncio
async def test_record_result_unknown_match(queue_engine):
    with pytest.raises(MatchNotFoundError):
        await queue_engine.record_result(9999, games((21, 10)))


@pytest.mark.asyncio
async def test_record_result_negative_score_writes_nothing(queue_engine, db_session):
    match = await queue_engine.create_match("Court 1", [1], [2])

    with pytest.raises(InvalidScoreError):
        await queue_engine.record_result(match["id"], games((21, 10), (-1, 21)))

    result = await db_session.execute(select(MatchScore.id))
    assert result.all() == []
    active = await queue_engine.active_matches()
    assert [m["id"] for m in active] == [match["id"]]


# ============================================================================
# Listings
# ============================================================================

@pytest.mark.asyncio
async def test_history_newest_first_with_won_flag(queue_engine):
    first = await queue_engine.create_match("Court 1", [1], [2])
    await queue_engine.record_result(first["id"], games((21, 10)))
    second = await queue_engine.create_match("Court 1", [3], [1])
    await queue_engine.record_result(second["id"], games((21, 10)))
    await queue_engine.create_match("Court 2", [4], [5])

    history = await queue_engine.history(1)

    assert [item["match"]["id"] for item in history] == [second["id"], first["id"]]
    assert [item["won"] for item in history] == [False, True]


@pytest.mark.asyncio
async def test_history_respects_limit(queue_engine):
    for _ in range(3):
        await queue_engine.create_match("Court 1", [1], [2])

    assert len(await queue_engine.history(1, limit=2)) == 2
    assert await queue_engine.history(99) == []


@pytest.mark.asyncio
async def test_active_and_completed_matches(queue_engine):
    first = await queue_engine.create_match("Court 1", [1], [2])
    second = await queue_engine.create_match("Court 2", [3], [4])
    await queue_engine.record_result(first["id"], games((21, 10)))

    active = await queue_engine.active_matches()
    completed = await queue_engine.completed_matches()

    assert [m["id"] for m in active] == [second["id"]]
    assert [m["id"] for m in completed] == [first["id"]]
    assert completed[0]["result"] == "team1"


@pytest.mark.asyncio
async def test_timestamps_serialize_the_same_after_reload(queue_engine):
    match = await queue_engine.create_match("Court 1", [1], [2])
    resolved = await queue_engine.record_result(match["id"], games((21, 10)))

    reloaded = (await queue_engine.completed_matches())[0]

    assert reloaded["ended_at"] == resolved["ended_at"]
    assert reloaded["started_at"] == match["started_at"]
    assert reloaded["ended_at"].endswith("+00:00")


# ============================================================================
# Overlapping matches
# ============================================================================

@pytest.mark.asyncio
async def test_create_match_warns_about_player_already_playing(queue_engine, db_session, caplog):
    await queue_engine.join(1)
    await queue_engine.join(2)
    await queue_engine.create_match("Court 1", [1], [2])

    with caplog.at_level("WARNING", logger="smashqueue.services.queue_service"):
        await queue_engine.create_match("Court 2", [1], [3])

    assert "Participant 1 is already playing another match" in caplog.text
    statuses = await queue_statuses(db_session)
    assert statuses[1][0] == "playing"
    assert statuses[2][0] == "playing"
