from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Literal


RoomState = Literal["idle", "playing"]
GuessOutcome = Literal["correct", "repeat", "drawer", "chat"]


@dataclass
class Player:
    id: str
    name: str
    score: int = 0


@dataclass
class Room:
    code: str
    host_id: str | None = None
    state: RoomState = "idle"
    round: int = 0
    drawer_id: str | None = None
    word: str | None = None
    started_at_ms: int | None = None
    round_ends_at_ms: int | None = None
    round_duration_sec: int = 60
    correct_guessers: set[str] = field(default_factory=set)
    # dict preserves insertion order == join order
    players: dict[str, Player] = field(default_factory=dict)
    # Rotation anchor: the next round goes to next_drawer_id if set, else to
    # whoever follows last_drawer_id in join order. Both are members or None.
    last_drawer_id: str | None = None
    next_drawer_id: str | None = None
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)


@dataclass(frozen=True)
class RoundStart:
    round: int
    drawer_id: str
    drawer_name: str
    word: str
    masked_word: str
    started_at_ms: int
    round_ends_at_ms: int
    round_duration_sec: int


@dataclass(frozen=True)
class Departure:
    player: Player
    host_changed: bool = False
    was_drawer: bool = False
    # Round cut short by this departure, if any.
    ended_round: int | None = None
    end_reason: str | None = None
    # Set when the drawer left mid-round and enough players remain.
    next_round: RoundStart | None = None
    room_empty: bool = False


@dataclass(frozen=True)
class GuessResult:
    outcome: GuessOutcome
    player: Player
    text: str
