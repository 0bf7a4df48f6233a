import threading

import pytest

from swissarbiter.exceptions import ValidationError
from swissarbiter.models import (
    Decisive,
    Draw,
    Forfeit,
    ResultType,
    ResultValue,
    outcome_from_fields,
)
from swissarbiter.type_hints import BLACK, WHITE


@pytest.fixture
def running(make_tournament, start_round):
    tournament, players = make_tournament()
    round_, games = start_round(tournament.id, 1)
    return tournament, round_, games


def _snapshot(store, tournament_id):
    return (
        [g.to_dict() for g in store.list_games(tournament_id)],
        store.audit_length(tournament_id),
        store.results_version(tournament_id),
    )


@pytest.mark.parametrize(
    "result, result_type, expected",
    [
        ("1-0", None, Decisive(WHITE)),
        ("0-1", "normal", Decisive(BLACK)),
        ("1/2-1/2", None, Draw()),
        ("white_wins", "forfeit", Forfeit(loser=BLACK)),
        ("0-1F", None, Forfeit(loser=WHITE)),
        ("black_wins", "white_forfeit", Forfeit(loser=WHITE)),
    ],
)
def test_result_notation_folds_into_outcome(result, result_type, expected):
    assert outcome_from_fields(result, result_type) == expected


def test_forfeit_draw_is_rejected(service, running):
    _, _, games = running

    validation = service.validate_game_result(
        games[0].id, "draw", "forfeit", changed_by="arbiter"
    )

    assert not validation.is_valid
    assert "forfeit" in validation.error_message


@pytest.mark.parametrize(
    "result, result_type",
    [
        ("draw", "timeout"),
        ("white_wins", "bye"),
        ("adjourned", "normal"),
        ("1-0", "cancelled"),
        ("white_wins", "white_forfeit"),
        ("1-0", "black_wins"),
        ("2-0", None),
    ],
)
def test_inconsistent_results_are_rejected(service, running, result, result_type):
    _, _, games = running

    validation = service.validate_game_result(games[0].id, result, result_type, changed_by="a")

    assert not validation.is_valid


def test_bye_game_only_takes_bye_results(service, make_tournament, start_round):
    tournament, _ = make_tournament(ratings=(1800, 1700, 1600))
    _, games = start_round(tournament.id, 1)
    bye = next(g for g in games if g.is_bye)

    assert not service.validate_game_result(bye.id, "1-0", "normal").is_valid
    assert service.validate_game_result(bye.id, "white_wins", "bye").is_valid


def test_missing_game_is_reported_not_raised(service, running):
    validation = service.validate_game_result("game-missing", "1-0")

    assert not validation.is_valid
    assert "not found" in validation.error_message


def test_requires_approval_is_derived_from_result_type():
    assert ResultType.FORFEIT.requires_approval
    assert ResultType.DEFAULT.requires_approval
    assert ResultType.DOUBLE_FORFEIT.requires_approval
    assert ResultType.CANCELLED.requires_approval
    assert not ResultType.NORMAL.requires_approval
    assert not ResultType.TIMEOUT.requires_approval
    assert not ResultType.ADJOURNED.requires_approval


def test_irregular_result_needs_an_authority(service, running):
    _, _, games = running

    without = service.validate_game_result(games[0].id, "1-0", "forfeit")
    with_authority = service.validate_game_result(
        games[0].id, "1-0", "forfeit", changed_by="arbiter"
    )

    assert not without.is_valid
    assert with_authority.is_valid
    assert with_authority.warnings


def test_validate_only_never_mutates(service, store, running):
    tournament, _, games = running
    before = _snapshot(store, tournament.id)
    updates = [
        {"game_id": games[0].id, "result": "1-0"},
        {"game_id": games[1].id, "result": "draw", "result_type": "forfeit"},
        {"game_id": "game-missing", "result": "0-1"},
    ]

    batch = service.batch_update_results(
        tournament.id, updates, validate_only=True, changed_by="arbiter"
    )

    assert not batch.overall_valid
    assert [index for index, _ in batch.results] == [0, 1, 2]
    assert [v.is_valid for _, v in batch.results] == [True, False, False]
    assert not batch.applied
    assert _snapshot(store, tournament.id) == before


def test_valid_validate_only_batch_also_leaves_state_alone(service, store, running):
    tournament, _, games = running
    before = _snapshot(store, tournament.id)

    batch = service.batch_update_results(
        tournament.id,
        [{"game_id": g.id, "result": "1-0"} for g in games],
        validate_only=True,
    )

    assert batch.overall_valid
    assert _snapshot(store, tournament.id) == before


def test_invalid_batch_applies_nothing(service, store, running):
    tournament, _, games = running
    before = _snapshot(store, tournament.id)

    batch = service.batch_update_results(
        tournament.id,
        [
            {"game_id": games[0].id, "result": "1-0"},
            {"game_id": games[1].id, "result": "draw", "result_type": "forfeit"},
        ],
        changed_by="arbiter",
    )

    assert not batch.overall_valid
    assert not batch.applied
    assert _snapshot(store, tournament.id) == before


def test_applied_batch_writes_one_audit_record_per_changed_game(service, store, running):
    tournament, _, games = running
    version = store.results_version(tournament.id)

    batch = service.batch_update_results(
        tournament.id,
        [
            {"game_id": games[0].id, "result": "1-0", "result_reason": "Mate"},
            {"game_id": games[1].id, "result": "1/2-1/2"},
        ],
        changed_by="arbiter",
    )

    assert batch.applied
    assert len(batch.audit_records) == 2
    assert batch.results_version == version + 1
    trail = service.get_game_audit_trail(games[0].id)
    assert len(trail) == 1
    assert trail[0].old_result is None
    assert trail[0].new_result == ResultValue.WHITE_WINS.value
    assert trail[0].changed_by == "arbiter"
    assert trail[0].reason == "Mate"
    assert trail[0].approved


def test_unchanged_result_adds_no_audit_record(service, running):
    tournament, _, games = running
    service.update_game_result(games[0].id, "1-0", changed_by="arbiter")

    batch = service.update_game_result(
        games[0].id, "white_wins", arbiter_notes="Checked score sheet", changed_by="arbiter"
    )

    assert batch.applied
    assert batch.audit_records == []
    assert len(service.get_game_audit_trail(games[0].id)) == 1
    assert any("unchanged" in w for w in batch.results[0][1].warnings)


def test_correction_records_old_and_new_result(service, running):
    tournament, _, games = running
    service.update_game_result(games[0].id, "1-0", changed_by="arbiter")
    service.update_game_result(games[0].id, "0-1", result_reason="Wrong sheet", changed_by="chief")

    trail = service.get_game_audit_trail(games[0].id)

    assert [(r.old_result, r.new_result) for r in trail] == [
        (None, "white_wins"),
        ("white_wins", "black_wins"),
    ]
    assert trail[0].sequence < trail[1].sequence


def test_applying_needs_changed_by(service, running):
    tournament, _, games = running

    with pytest.raises(ValidationError):
        service.batch_update_results(tournament.id, [{"game_id": games[0].id, "result": "1-0"}])


def test_duplicate_game_in_batch_is_rejected(service, running):
    tournament, _, games = running

    batch = service.batch_update_results(
        tournament.id,
        [
            {"game_id": games[0].id, "result": "1-0"},
            {"game_id": games[0].id, "result": "0-1"},
        ],
        validate_only=True,
    )

    assert not batch.overall_valid
    assert batch.results[1][1].errors


def test_irregular_result_is_pending_until_approved(service, running):
    tournament, _, games = running
    service.update_game_result(games[0].id, "1-0D", changed_by="arbiter")
    game = service.get_round_details(games[0].round_id).games[0]
    assert game.requires_approval and not game.approved

    record = service.approve_result(games[0].id, "chief", reason="Late arrival")

    assert record.is_approval
    trail = service.get_game_audit_trail(games[0].id)
    assert [r.approved for r in trail] == [False, True]
    assert service.get_round_details(games[0].round_id).games[0].approved
    with pytest.raises(ValidationError):
        service.approve_result(games[0].id, "chief")


def test_approving_a_regular_result_is_rejected(service, running):
    _, _, games = running
    service.update_game_result(games[0].id, "1-0", changed_by="arbiter")

    with pytest.raises(ValidationError):
        service.approve_result(games[0].id, "chief")


def test_results_wait_for_published_round(service, make_tournament):
    tournament, players = make_tournament()
    round_ = service.create_round(tournament.id, 1)
    service.update_round_status(round_.id, "pairing")
    proposal = service.generate_pairings(tournament.id, 1)
    games = service.create_pairings_as_games(tournament.id, 1, proposal.pairings)

    assert not service.validate_game_result(games[0].id, "1-0").is_valid


def test_verified_round_is_locked(service, running):
    tournament, round_, games = running
    service.batch_update_results(
        tournament.id, [{"game_id": g.id, "result": "1-0"} for g in games], changed_by="a"
    )
    service.complete_round(round_.id)
    service.update_round_status(round_.id, "verified", changed_by="chief")

    validation = service.validate_game_result(games[0].id, "0-1", changed_by="chief")

    assert not validation.is_valid


def test_completed_round_correction_warns(service, running):
    tournament, round_, games = running
    service.batch_update_results(
        tournament.id, [{"game_id": g.id, "result": "1-0"} for g in games], changed_by="a"
    )
    service.complete_round(round_.id)

    validation = service.validate_game_result(games[0].id, "0-1", changed_by="chief")

    assert validation.is_valid
    assert any("audited" in w for w in validation.warnings)


def test_snapshot_never_sees_a_half_applied_batch(service, store, running, monkeypatch):
    tournament, _, games = running
    version = store.results_version(tournament.id)
    first_saved = threading.Event()
    release = threading.Event()
    save_game = store.save_game

    def save_then_pause(game):
        save_game(game)
        if not first_saved.is_set():
            first_saved.set()
            release.wait(5)

    monkeypatch.setattr(store, "save_game", save_then_pause)
    updates = [{"game_id": g.id, "result": "1-0"} for g in games]
    writer = threading.Thread(
        target=service.batch_update_results,
        args=(tournament.id, updates),
        kwargs={"changed_by": "arbiter"},
    )
    snapshots = []
    reader = threading.Thread(target=lambda: snapshots.append(service.snapshot(tournament.id)))

    writer.start()
    assert first_saved.wait(5)
    reader.start()
    reader.join(0.2)
    # one game is written, the reader waits for the rest
    assert reader.is_alive()
    release.set()
    writer.join(5)
    reader.join(5)

    snapshot = snapshots[0]
    assert [g.is_decided for g in snapshot.games] == [True, True]
    assert snapshot.results_version == version + 1
    standings = service.get_tournament_standings(tournament.id)
    assert sum(s.points for s in standings) == 2.0
