from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service
from ..realtime.bindings import bindings

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    return jsonify({"ok": True, "rooms": len(service.list_rooms()), "connections": len(bindings)})
