from __future__ import annotations

import logging
import re
import secrets
import string
import time
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Iterator

from ..config import Config, ConfigError
from .models import Departure, GuessResult, Player, Room, RoundStart
from .words import pick_word


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class GameSettings:
    round_duration_sec: int = Config.ROUND_DURATION_SEC
    min_players: int = Config.MIN_PLAYERS
    correct_guess_points: int = Config.CORRECT_GUESS_POINTS
    room_code_length: int = Config.ROOM_CODE_LENGTH


settings = GameSettings()


def configure(
    round_duration_sec: int | None = None,
    min_players: int | None = None,
    correct_guess_points: int | None = None,
    room_code_length: int | None = None,
) -> GameSettings:
    global settings
    new = GameSettings(
        round_duration_sec=settings.round_duration_sec if round_duration_sec is None else round_duration_sec,
        min_players=settings.min_players if min_players is None else min_players,
        correct_guess_points=settings.correct_guess_points if correct_guess_points is None else correct_guess_points,
        room_code_length=settings.room_code_length if room_code_length is None else room_code_length,
    )
    if new.round_duration_sec < 10 or new.round_duration_sec > 300:
        raise ConfigError(f"ROUND_DURATION_SEC must be within 10..300, got {new.round_duration_sec}")
    if new.min_players < 2:
        raise ConfigError(f"MIN_PLAYERS must be at least 2, got {new.min_players}")
    if new.correct_guess_points < 1:
        raise ConfigError(f"CORRECT_GUESS_POINTS must be positive, got {new.correct_guess_points}")
    if new.room_code_length < 4:
        raise ConfigError(f"ROOM_CODE_LENGTH must be at least 4, got {new.room_code_length}")
    settings = new
    return settings


# ---------------------------------------------------------------------------
# Room registry
# ---------------------------------------------------------------------------

_lock = RLock()
_rooms: dict[str, Room] = {}

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code() -> str:
    """Return a room code not currently in use. Nothing is reserved."""
    with _lock:
        while True:
            code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(settings.room_code_length))
            if code not in _rooms:
                return code


def get_or_create_room(code: str) -> Room:
    with _lock:
        room = _rooms.get(code)
        if room is None:
            room = Room(code=code, round_duration_sec=settings.round_duration_sec)
            _rooms[code] = room
            logger.info("room %s created", code)
        return room


def get_room(code: str) -> Room | None:
    with _lock:
        return _rooms.get(code)


def remove_room_if_empty(code: str) -> bool:
    with _lock:
        room = _rooms.get(code)
        if room is None:
            return False
        with room.lock:
            if room.players:
                return False
            del _rooms[code]
        logger.info("room %s removed", code)
        return True


def list_rooms() -> list[Room]:
    with _lock:
        return list(_rooms.values())


def clear_rooms() -> None:
    with _lock:
        _rooms.clear()


@contextmanager
def enter_room(code: str, player_id: str, name: str) -> Iterator[tuple[Room, list[Player], bool]]:
    """Resolve or create the room and join it, yielding with room.lock held.

    The room lock is taken before the registry lock is released, so a
    concurrent remove_room_if_empty cannot drop the room between lookup and
    join, and nothing else touching the room runs until the caller has
    finished wiring up the new member.
    """
    with _lock:
        room = get_or_create_room(code)
        room.lock.acquire()
    try:
        roster, added = join(room, player_id, name)
        yield room, roster, added
    finally:
        room.lock.release()


# ---------------------------------------------------------------------------
# Room state machine
# ---------------------------------------------------------------------------

def join(room: Room, player_id: str, name: str) -> tuple[list[Player], bool]:
    """Add a player; returns (roster in join order, whether the player was new)."""
    with room.lock:
        added = player_id not in room.players
        if added:
            room.players[player_id] = Player(id=player_id, name=name)
            if room.host_id is None or room.host_id not in room.players:
                room.host_id = player_id
            logger.info("room %s: player %s joined (%d players)", room.code, player_id, len(room.players))
        return list(room.players.values()), added


def leave(room: Room, player_id: str) -> Departure | None:
    with room.lock:
        ids = list(room.players.keys())
        if player_id not in ids:
            return None

        idx = ids.index(player_id)
        player = room.players.pop(player_id)
        remaining = [pid for pid in ids if pid != player_id]
        room.correct_guessers.discard(player_id)

        host_changed = False
        if room.host_id == player_id:
            room.host_id = remaining[0] if remaining else None
            host_changed = room.host_id is not None

        # The player after the departed one in join order takes its place in
        # the rotation; idx now points at that player in `remaining`.
        successor = remaining[idx % len(remaining)] if remaining else None
        if room.last_drawer_id == player_id:
            room.last_drawer_id = None
            room.next_drawer_id = successor
        elif room.next_drawer_id == player_id:
            room.next_drawer_id = successor

        was_drawer = room.drawer_id == player_id
        ended_round = room.round if room.state == "playing" else None
        end_reason = None
        next_round = None
        if was_drawer:
            end_reason = "drawer_left"
            if room.state == "playing" and len(remaining) >= settings.min_players:
                next_round = _start_round_locked(room, successor)
            else:
                _reset_to_idle_locked(room)
        elif room.state == "playing" and len(remaining) < settings.min_players:
            end_reason = "not_enough_players"
            _reset_to_idle_locked(room)

        logger.info("room %s: player %s left (%d players)", room.code, player_id, len(remaining))
        return Departure(
            player=player,
            host_changed=host_changed,
            was_drawer=was_drawer,
            ended_round=ended_round if end_reason else None,
            end_reason=end_reason if ended_round is not None else None,
            next_round=next_round,
            room_empty=not remaining,
        )


def _successor_of(room: Room, player_id: str | None) -> str | None:
    ids = list(room.players.keys())
    if not ids:
        return None
    if player_id in ids:
        return ids[(ids.index(player_id) + 1) % len(ids)]
    return ids[0]


def _next_drawer_id(room: Room) -> str | None:
    if room.next_drawer_id and room.next_drawer_id in room.players:
        return room.next_drawer_id
    return _successor_of(room, room.last_drawer_id)


def _start_round_locked(room: Room, drawer_id: str) -> RoundStart:
    room.state = "playing"
    room.round += 1
    room.drawer_id = drawer_id
    room.last_drawer_id = drawer_id
    room.next_drawer_id = None
    room.word = pick_word()
    room.correct_guessers = set()
    room.started_at_ms = now_ms()
    room.round_ends_at_ms = room.started_at_ms + (room.round_duration_sec * 1000)

    logger.info("room %s: round %d started, drawer %s", room.code, room.round, drawer_id)
    return RoundStart(
        round=room.round,
        drawer_id=drawer_id,
        drawer_name=room.players[drawer_id].name,
        word=room.word,
        masked_word=mask_word(room.word),
        started_at_ms=room.started_at_ms,
        round_ends_at_ms=room.round_ends_at_ms,
        round_duration_sec=room.round_duration_sec,
    )


def _reset_to_idle_locked(room: Room) -> None:
    room.state = "idle"
    room.drawer_id = None
    room.word = None
    room.started_at_ms = None
    room.round_ends_at_ms = None
    room.correct_guessers = set()


def start_round(room: Room) -> RoundStart | None:
    """Rotate the drawer and pick a new word; None when too few players."""
    with room.lock:
        if len(room.players) < settings.min_players:
            return None
        drawer_id = _next_drawer_id(room)
        if drawer_id is None:
            return None
        return _start_round_locked(room, drawer_id)


def expire_round(room: Room, expected_round: int) -> tuple[bool, RoundStart | None]:
    """Handle a round timer firing.

    Returns (expired, next_round). A timer for any round other than the
    current one is stale and leaves the room untouched.
    """
    with room.lock:
        if room.state != "playing" or room.round != expected_round:
            logger.debug("room %s: stale timer for round %d ignored", room.code, expected_round)
            return False, None

        logger.info("room %s: round %d timed out", room.code, expected_round)
        next_round = start_round(room)
        if next_round is None:
            _reset_to_idle_locked(room)
        return True, next_round


def normalize_guess(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip()).casefold()


def submit_guess(room: Room, player_id: str, text: str) -> GuessResult | None:
    with room.lock:
        player = room.players.get(player_id)
        if player is None:
            return None

        if room.state != "playing" or not room.word or normalize_guess(text) != room.word.casefold():
            return GuessResult(outcome="chat", player=player, text=text)

        if player_id == room.drawer_id:
            return GuessResult(outcome="drawer", player=player, text=text)

        if player_id in room.correct_guessers:
            return GuessResult(outcome="repeat", player=player, text=text)

        room.correct_guessers.add(player_id)
        player.score += settings.correct_guess_points
        logger.info("room %s: player %s guessed the word in round %d", room.code, player_id, room.round)
        return GuessResult(outcome="correct", player=player, text=text)


def mask_word(word: str) -> str:
    return "".join(" " if ch == " " else "_" for ch in word)


def masked_word(room: Room) -> str | None:
    with room.lock:
        return mask_word(room.word) if room.word else None


def roster(room: Room) -> list[dict]:
    with room.lock:
        return [
            {
                "id": p.id,
                "displayName": p.name,
                "score": p.score,
                "isDrawer": p.id == room.drawer_id,
                "isHost": p.id == room.host_id,
            }
            for p in room.players.values()
        ]


def room_public_state(room: Room, viewer_id: str | None = None) -> dict:
    with room.lock:
        drawer = room.players.get(room.drawer_id) if room.drawer_id else None
        payload = {
            "code": room.code,
            "hostId": room.host_id,
            "state": room.state,
            "round": room.round,
            "drawerId": room.drawer_id,
            "drawerName": drawer.name if drawer else None,
            "roundDurationSec": room.round_duration_sec,
            "startedAtMs": room.started_at_ms,
            "roundEndsAtMs": room.round_ends_at_ms,
            "players": roster(room),
            "maskedWord": mask_word(room.word) if room.word else None,
        }

        if viewer_id and viewer_id == room.drawer_id and room.word:
            payload["word"] = room.word

        return payload
