from __future__ import annotations

import functools
import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game import service
from ..game.models import Departure, Room, RoundStart
from ..utils.ip import get_client_ip
from . import events
from .bindings import Binding, bindings


logger = logging.getLogger(__name__)


def _guarded(handler):
    """Log and drop any unexpected error so one bad event never takes down the worker."""

    @functools.wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except Exception:
            logger.exception("error handling %s", handler.__name__)
            return None

    return wrapper


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def register_socketio_handlers(socketio: SocketIO, round_timer_enabled: bool = True) -> None:
    def _error(code: str) -> None:
        emit(events.ROOM_ERROR, {"error": code}, to=request.sid)

    def _system(room_code: str, text: str, to: str | None = None) -> None:
        socketio.emit(
            events.CHAT_MESSAGE,
            {"from": "system", "displayName": "system", "text": text, "system": True},
            to=to or room_code,
        )

    def _broadcast_roster(room: Room) -> None:
        socketio.emit(
            events.ROOM_ROSTER,
            {"roomCode": room.code, "hostId": room.host_id, "players": service.roster(room)},
            to=room.code,
        )

    def _hint_payload(room: Room) -> dict:
        drawer = room.players.get(room.drawer_id) if room.drawer_id else None
        return {
            "maskedWord": service.masked_word(room),
            "round": room.round,
            "drawerId": room.drawer_id,
            "drawerName": drawer.name if drawer else None,
            "startedAtMs": room.started_at_ms,
            "roundDurationSec": room.round_duration_sec,
            "roundEndsAtMs": room.round_ends_at_ms,
        }

    def _announce_round(room: Room, start: RoundStart) -> None:
        # Caller holds room.lock, so room state still matches `start`.
        socketio.emit(events.DRAW_CLEAR, {}, to=room.code)
        _broadcast_roster(room)
        socketio.emit(events.ROUND_HINT, _hint_payload(room), to=room.code)

        drawer_sid = bindings.sid_for(room.code, start.drawer_id)
        if drawer_sid:
            socketio.emit(events.ROUND_WORD, {"word": start.word, "round": start.round}, to=drawer_sid)
        else:
            logger.warning("room %s: no connection bound for drawer %s", room.code, start.drawer_id)

        _system(room.code, f"{start.drawer_name} is the drawer!")
        _schedule_round_timer(room, start)

    def _schedule_round_timer(room: Room, start: RoundStart) -> None:
        if not round_timer_enabled:
            return
        room_code = room.code

        def _runner() -> None:
            delay = max(0.0, (start.round_ends_at_ms - service.now_ms()) / 1000)
            socketio.sleep(delay)

            # A room removed and recreated under the same code restarts at
            # round 1, so the round number alone cannot identify it.
            if service.get_room(room_code) is not room:
                logger.debug("room %s: timer outlived its room", room_code)
                return

            try:
                with room.lock:
                    expired, next_round = service.expire_round(room, start.round)
                    if not expired:
                        return
                    socketio.emit(events.ROUND_END, {"round": start.round, "reason": "timeout"}, to=room_code)
                    if next_round is not None:
                        _announce_round(room, next_round)
                    else:
                        _broadcast_roster(room)
            except Exception:
                logger.exception("room %s: round timer failed", room_code)

        socketio.start_background_task(_runner)

    def _announce_departure(room: Room, departure: Departure) -> None:
        _system(room.code, f"{departure.player.name} left the game.")
        if departure.ended_round is not None:
            socketio.emit(
                events.ROUND_END,
                {"round": departure.ended_round, "reason": departure.end_reason},
                to=room.code,
            )
        if departure.next_round is not None:
            _announce_round(room, departure.next_round)
        else:
            _broadcast_roster(room)

    def _bound_room(notify: bool = True) -> tuple[Binding, Room] | None:
        binding = bindings.get(request.sid)
        room = service.get_room(binding.room_code) if binding else None
        if binding is None or room is None:
            logger.debug("dropping event from unbound connection %s", request.sid)
            if notify:
                _error(events.NOT_IN_ROOM)
            return None
        return binding, room

    def _depart(sid: str, explicit: bool) -> None:
        binding = bindings.unbind(sid)
        if binding is None:
            return

        room = service.get_room(binding.room_code)
        if room is None:
            return

        with room.lock:
            departure = service.leave(room, binding.player_id)
            if explicit:
                leave_room(binding.room_code, sid=sid)
            if departure is not None and not departure.room_empty:
                _announce_departure(room, departure)

        service.remove_room_if_empty(binding.room_code)

    @socketio.on("connect")
    @_guarded
    def on_connect(auth=None):
        logger.info("client %s connected from %s", request.sid, get_client_ip(request))

    @socketio.on(events.ROOM_JOIN)
    @_guarded
    def room_join(data=None):
        payload = _payload(data)
        room_code = payload.get("roomCode")
        name = payload.get("name")

        if not isinstance(room_code, str) or not room_code.strip() or not isinstance(name, str) or not name.strip():
            logger.warning("malformed %s from %s", events.ROOM_JOIN, request.sid)
            _error(events.INVALID_PAYLOAD)
            return

        room_code = room_code.strip()
        name = name.strip()
        sid = request.sid

        existing = bindings.get(sid)
        if existing is not None and existing.room_code != room_code:
            _error(events.ALREADY_IN_ROOM)
            return

        with service.enter_room(room_code, sid, name) as (room, _, added):
            bindings.bind(sid, room_code, sid)
            join_room(room_code)

            emit(
                events.ROOM_JOINED,
                {
                    "roomCode": room_code,
                    "playerId": sid,
                    "hostId": room.host_id,
                    "state": service.room_public_state(room),
                },
                to=sid,
            )
            if added:
                _system(room_code, f"{name} joined the game.")
            _broadcast_roster(room)

            if room.state == "playing":
                emit(events.ROUND_HINT, _hint_payload(room), to=sid)

    @socketio.on(events.ROOM_LEAVE)
    @_guarded
    def room_leave(data=None):
        _depart(request.sid, explicit=True)

    @socketio.on(events.GAME_START)
    @_guarded
    def game_start(data=None):
        ctx = _bound_room()
        if ctx is None:
            return
        binding, room = ctx

        with room.lock:
            if binding.player_id != room.host_id:
                _error(events.ONLY_HOST)
                return

            previous_round = room.round if room.state == "playing" else None
            start = service.start_round(room)
            if start is None:
                logger.debug("room %s: cannot start with %d players", room.code, len(room.players))
                _error(events.CANNOT_START)
                return

            if previous_round is not None:
                socketio.emit(events.ROUND_END, {"round": previous_round, "reason": "skipped"}, to=room.code)
            _announce_round(room, start)

    @socketio.on(events.DRAW_STROKE)
    @_guarded
    def draw_stroke(data=None):
        ctx = _bound_room(notify=False)
        if ctx is None or data is None:
            return
        binding, room = ctx

        with room.lock:
            if room.state == "playing" and binding.player_id != room.drawer_id:
                return
            emit(events.DRAW_STROKE, data, to=room.code, include_self=False)

    @socketio.on(events.DRAW_CLEAR)
    @_guarded
    def draw_clear(data=None):
        ctx = _bound_room()
        if ctx is None:
            return
        binding, room = ctx

        with room.lock:
            if room.state == "playing" and binding.player_id != room.drawer_id:
                return
            emit(events.DRAW_CLEAR, {}, to=room.code)

    @socketio.on(events.CHAT_MESSAGE)
    @_guarded
    def chat_message(data=None):
        text = _payload(data).get("text")
        if not isinstance(text, str) or not text.strip():
            logger.warning("malformed %s from %s", events.CHAT_MESSAGE, request.sid)
            _error(events.INVALID_PAYLOAD)
            return

        ctx = _bound_room()
        if ctx is None:
            return
        binding, room = ctx

        with room.lock:
            result = service.submit_guess(room, binding.player_id, text)
            if result is None:
                _error(events.NOT_IN_ROOM)
                return

            if result.outcome == "correct":
                socketio.emit(
                    events.GUESS_CORRECT,
                    {"playerId": result.player.id, "displayName": result.player.name, "score": result.player.score},
                    to=room.code,
                )
                _broadcast_roster(room)
            elif result.outcome == "repeat":
                _system(room.code, "You already guessed the word.", to=request.sid)
            elif result.outcome == "drawer":
                _system(room.code, "The drawer cannot reveal the word.", to=request.sid)
            else:
                socketio.emit(
                    events.CHAT_MESSAGE,
                    {"from": result.player.id, "displayName": result.player.name, "text": text, "system": False},
                    to=room.code,
                )

    @socketio.on("disconnect")
    @_guarded
    def on_disconnect(reason=None):
        logger.info("client %s disconnected", request.sid)
        _depart(request.sid, explicit=False)
