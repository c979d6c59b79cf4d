from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service

bp = Blueprint("rooms", __name__)


@bp.post("/rooms")
def create_room():
    # Only hands out an unused code; the room itself appears on first join.
    return jsonify({"roomCode": service.generate_code()}), 201


@bp.get("/rooms/<code>")
def get_room(code: str):
    room = service.get_room(code)
    if not room:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(service.room_public_state(room))
