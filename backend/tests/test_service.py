import random
import threading

import pytest

from doodle.game import service
from doodle.game.models import Room


def make_room(*names, code="ABCD"):
    room = service.get_or_create_room(code)
    for name in names:
        service.join(room, name.lower(), name)
    return room


def test_get_or_create_returns_same_room():
    first = service.get_or_create_room("ABCD")
    second = service.get_or_create_room("ABCD")
    assert first is second
    assert service.get_room("abcd") is None


def test_concurrent_creation_resolves_to_one_room():
    barrier = threading.Barrier(8)
    seen = []

    def worker():
        barrier.wait()
        seen.append(service.get_or_create_room("RACE"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(r) for r in seen}) == 1


def test_join_dedupes_and_keeps_order():
    room = make_room("Alice", "Bob")
    roster, added = service.join(room, "alice", "Alice")
    assert added is False
    assert [p.name for p in roster] == ["Alice", "Bob"]
    assert room.host_id == "alice"


def test_join_does_not_start_round():
    room = make_room("Alice", "Bob")
    assert room.state == "idle"
    assert room.word is None
    assert room.drawer_id is None


def test_start_round_needs_two_players():
    room = make_room("Alice")
    assert service.start_round(room) is None
    assert room.state == "idle"


def test_first_round_starts_with_first_joiner(fixed_word):
    room = make_room("Alice", "Bob")
    start = service.start_round(room)
    assert start.drawer_id == "alice"
    assert start.word == "apple"
    assert start.masked_word == "_____"
    assert start.round == 1
    assert start.round_ends_at_ms - start.started_at_ms == 60_000
    assert room.state == "playing"


def test_round_robin_visits_everyone():
    room = make_room("Alice", "Bob", "Cara")
    drawers = [service.start_round(room).drawer_id for _ in range(7)]
    assert drawers == ["alice", "bob", "cara", "alice", "bob", "cara", "alice"]
    for pid in ("alice", "bob", "cara"):
        assert drawers.count(pid) >= 7 // 3


def test_correct_guess_scores_once(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)

    result = service.submit_guess(room, "bob", "APPLE")
    assert result.outcome == "correct"
    assert result.player.name == "Bob"
    assert room.players["bob"].score == 10
    assert room.players["alice"].score == 0

    again = service.submit_guess(room, "bob", "  apple ")
    assert again.outcome == "repeat"
    assert room.players["bob"].score == 10


def test_correct_guess_does_not_rotate(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)
    service.submit_guess(room, "bob", "apple")
    assert room.drawer_id == "alice"
    assert room.word == "apple"


def test_drawer_cannot_guess(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)
    result = service.submit_guess(room, "alice", "apple")
    assert result.outcome == "drawer"
    assert room.players["alice"].score == 0


def test_wrong_guess_is_chat(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)
    result = service.submit_guess(room, "bob", "an apple")
    assert result.outcome == "chat"
    assert result.text == "an apple"


def test_guess_while_idle_is_chat(fixed_word):
    room = make_room("Alice", "Bob")
    assert service.submit_guess(room, "bob", "apple").outcome == "chat"


def test_guess_from_stranger_is_ignored(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)
    assert service.submit_guess(room, "mallory", "apple") is None


def test_multi_word_guess_normalizes_spaces(monkeypatch):
    monkeypatch.setattr(service, "pick_word", lambda: "ice cream")
    room = make_room("Alice", "Bob")
    service.start_round(room)
    assert service.masked_word(room) == "___ _____"
    assert service.submit_guess(room, "bob", "Ice   Cream").outcome == "correct"


def test_new_round_resets_guessers(fixed_word):
    room = make_room("Alice", "Bob", "Cara")
    service.start_round(room)
    service.submit_guess(room, "bob", "apple")
    service.start_round(room)
    assert room.drawer_id == "bob"
    assert service.submit_guess(room, "cara", "apple").outcome == "correct"
    assert service.submit_guess(room, "alice", "apple").outcome == "correct"
    assert room.players["bob"].score == 10


def test_drawer_leaving_rotates_to_next(fixed_word):
    room = make_room("Alice", "Bob", "Cara")
    service.start_round(room)
    service.start_round(room)
    assert room.drawer_id == "bob"

    departure = service.leave(room, "bob")
    assert departure.was_drawer
    assert departure.ended_round == 2
    assert departure.end_reason == "drawer_left"
    assert departure.next_round.drawer_id == "cara"
    assert room.drawer_id == "cara"
    assert room.round == 3


def test_last_drawer_leaving_wraps_to_first():
    room = make_room("Alice", "Bob", "Cara")
    for _ in range(3):
        service.start_round(room)
    assert room.drawer_id == "cara"

    departure = service.leave(room, "cara")
    assert departure.next_round.drawer_id == "alice"


def test_drawer_leaving_pair_goes_idle(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)

    departure = service.leave(room, "alice")
    assert departure.next_round is None
    assert departure.end_reason == "drawer_left"
    assert room.state == "idle"
    assert room.word is None
    assert room.drawer_id is None
    assert room.round_ends_at_ms is None


def test_guesser_leaving_pair_goes_idle():
    room = make_room("Alice", "Bob")
    service.start_round(room)

    departure = service.leave(room, "bob")
    assert departure.was_drawer is False
    assert departure.end_reason == "not_enough_players"
    assert room.state == "idle"
    assert room.word is None


def test_guesser_leaving_keeps_round():
    room = make_room("Alice", "Bob", "Cara")
    start = service.start_round(room)

    departure = service.leave(room, "cara")
    assert departure.ended_round is None
    assert room.round == start.round
    assert room.word == start.word


def test_rotation_resumes_after_idle():
    room = make_room("Alice", "Bob")
    service.start_round(room)
    service.leave(room, "bob")
    service.join(room, "cara", "Cara")
    assert service.start_round(room).drawer_id == "cara"
    assert service.start_round(room).drawer_id == "alice"


def test_host_transfers_to_longest_tenured():
    room = make_room("Alice", "Bob", "Cara")
    departure = service.leave(room, "alice")
    assert departure.host_changed
    assert room.host_id == "bob"


def test_leave_unknown_player():
    room = make_room("Alice")
    assert service.leave(room, "ghost") is None


def test_room_removed_when_empty():
    room = make_room("Alice", "Bob")
    service.leave(room, "alice")
    assert service.remove_room_if_empty("ABCD") is False
    departure = service.leave(room, "bob")
    assert departure.room_empty
    assert service.remove_room_if_empty("ABCD") is True
    assert service.get_room("ABCD") is None


def test_enter_room_after_removal_creates_fresh_room():
    room = make_room("Alice")
    service.leave(room, "alice")
    service.remove_room_if_empty("ABCD")

    with service.enter_room("ABCD", "bob", "Bob") as (fresh, roster, added):
        pass
    assert fresh is not room
    assert added
    assert [p.name for p in roster] == ["Bob"]
    assert fresh.host_id == "bob"


def test_enter_room_holds_room_until_caller_is_done():
    room = make_room("Alice", "Bob")
    service.start_round(room)
    started = []

    def host_starts():
        started.append(service.start_round(room))

    with service.enter_room("ABCD", "cara", "Cara") as (entered, _, added):
        assert entered is room
        assert added
        other = threading.Thread(target=host_starts)
        other.start()
        other.join(timeout=0.2)
        assert other.is_alive()
        assert started == []

    other.join(timeout=2)
    assert not other.is_alive()
    assert started[0].round == 2


def test_expire_round_starts_next(fixed_word):
    room = make_room("Alice", "Bob")
    start = service.start_round(room)

    expired, next_round = service.expire_round(room, start.round)
    assert expired
    assert next_round.drawer_id == "bob"
    assert next_round.round == start.round + 1


def test_stale_timer_is_ignored():
    room = make_room("Alice", "Bob", "Cara")
    first = service.start_round(room)
    service.leave(room, "alice")
    current = room.round

    expired, next_round = service.expire_round(room, first.round)
    assert (expired, next_round) == (False, None)
    assert room.round == current


def test_timer_after_idle_is_ignored():
    room = make_room("Alice", "Bob")
    start = service.start_round(room)
    service.leave(room, "bob")
    assert service.expire_round(room, start.round) == (False, None)


def test_random_membership_keeps_drawer_present():
    rng = random.Random(1234)
    room = service.get_or_create_room("FUZZ")
    next_id = 0

    for _ in range(500):
        action = rng.choice(["join", "join", "leave", "start", "guess"])
        if action == "join":
            pid = f"p{next_id}"
            next_id += 1
            service.join(room, pid, pid)
        elif action == "leave" and room.players:
            service.leave(room, rng.choice(list(room.players)))
        elif action == "start":
            service.start_round(room)
        elif action == "guess" and room.players and room.word:
            service.submit_guess(room, rng.choice(list(room.players)), room.word)

        if room.state == "playing":
            assert room.drawer_id in room.players
            assert room.word
            assert len(room.players) >= 2
        else:
            assert room.drawer_id is None
            assert room.word is None
        assert room.host_id in room.players or not room.players
        assert all(p.score >= 0 for p in room.players.values())


def test_public_state_hides_word_from_guessers(fixed_word):
    room = make_room("Alice", "Bob")
    service.start_round(room)

    public = service.room_public_state(room)
    assert "word" not in public
    assert public["maskedWord"] == "_____"
    assert "word" not in service.room_public_state(room, viewer_id="bob")
    assert service.room_public_state(room, viewer_id="alice")["word"] == "apple"


def test_generate_code_is_unused():
    make_room("Alice", code="ZZZZZZ")
    code = service.generate_code()
    assert len(code) == 6
    assert service.get_room(code) is None


@pytest.mark.parametrize(
    "kwargs",
    [{"round_duration_sec": 5}, {"min_players": 1}, {"correct_guess_points": 0}, {"room_code_length": 2}],
)
def test_configure_rejects_bad_settings(kwargs):
    from doodle.config import ConfigError

    with pytest.raises(ConfigError):
        service.configure(**kwargs)


def test_room_defaults():
    room = Room(code="X")
    assert room.state == "idle"
    assert room.players == {}
