import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, join_room

from game import ROOMS, ActionResult, GameError, Room


# Type helper: Flask-SocketIO adds 'sid' attribute to request at runtime
def _get_sid() -> Optional[str]:
    return getattr(request, "sid", None)


HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
SOCKETIO_LOGGER = os.environ.get("SOCKETIO_LOGGER", "false").lower() == "true"

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev")

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "").strip()
cors_allowed = "*" if not CORS_ORIGINS else [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "gevent")
socketio = SocketIO(
    app,
    cors_allowed_origins=cors_allowed,
    async_mode=ASYNC_MODE,
    logger=SOCKETIO_LOGGER,
    engineio_logger=SOCKETIO_LOGGER,
)


# ----------------------------
# Broadcast projection
# ----------------------------
def serialize(room: Room) -> Dict[str, Any]:
    """Public view of a room. The secret phrase itself is never included."""
    return {
        "roomCode": room.code,
        "players": [{"id": sid, "name": p.name, "score": p.score} for sid, p in room.players.items()],
        "state": {
            "category": room.category,
            "maskedPhrase": room.masked_phrase,
            "usedLetters": sorted(room.revealed_letters),
            "currentPlayerId": room.current_player_id,
            "currentSpin": room.current_spin.to_dict() if room.current_spin else None,
            "status": room.status,
            "solved": room.solved,
            "phraseLength": len(room.phrase),
        },
    }


def broadcast(code: str):
    room = ROOMS.find(code)
    if room is None:
        return
    socketio.emit("stateUpdate", serialize(room), room=code)


def system_message(code: str, text: str):
    socketio.emit("message", {"type": "system", "text": text}, room=code)


def relay(code: str, result: ActionResult):
    if result.spin is not None:
        # Clients animate the wheel to this index
        socketio.emit(
            "spinResult",
            {"roomCode": code, "index": result.spin.index, "segment": result.spin.segment.to_dict()},
            room=code,
        )
    for text in result.messages:
        system_message(code, text)
    broadcast(code)


def _room_code(data: Dict[str, Any]) -> str:
    return str(data.get("roomCode") or "").strip().upper()


def _payload(data: Any) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def reject(event: str, exc: GameError, ack: bool) -> Optional[Dict[str, Any]]:
    """Turn a rejected action into its ack payload, or nothing at all."""
    if exc.silent or not ack:
        logger.debug("Ignored %s from %s: %s", event, _get_sid(), exc)
        return None
    return {"success": False, "message": str(exc)}


@app.get("/health")
def health():
    return jsonify({"ok": True, "rooms": len(ROOMS)})


# ----------------------------
# Socket events
# ----------------------------
@socketio.on("connect")
def on_connect(auth=None):
    logger.info("Client connected: %s", _get_sid())


@socketio.on("disconnect")
def on_disconnect(reason=None):
    sid = _get_sid()
    logger.info("Client disconnected: %s", sid)
    with ROOMS.lock:
        for code, result in ROOMS.handle_disconnect(sid).items():
            for text in result.messages:
                system_message(code, text)
            if not result.room_deleted:
                broadcast(code)


@socketio.on("createRoom")
def on_create_room(data=None):
    sid = _get_sid()
    with ROOMS.lock:
        room = ROOMS.create_room(sid)
        join_room(room.code)
    return {"success": True, "roomCode": room.code}


@socketio.on("joinRoom")
def on_join_room(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.join_room(_room_code(data), _get_sid(), data.get("name"))
        except GameError as exc:
            return reject("joinRoom", exc, ack=True)
        join_room(room.code)
        broadcast(room.code)
    return {"success": True}


@socketio.on("setPuzzle")
def on_set_puzzle(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.get(_room_code(data))
            result = room.set_puzzle(_get_sid(), data.get("category"), data.get("phrase"))
        except GameError as exc:
            return reject("setPuzzle", exc, ack=False)
        relay(room.code, result)


@socketio.on("spinWheel")
def on_spin_wheel(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.get(_room_code(data))
            result = room.spin_wheel(_get_sid(), rng=ROOMS.rng)
        except GameError as exc:
            return reject("spinWheel", exc, ack=False)
        relay(room.code, result)


@socketio.on("guessLetter")
def on_guess_letter(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.get(_room_code(data))
            result = room.guess_letter(_get_sid(), data.get("letter"))
        except GameError as exc:
            return reject("guessLetter", exc, ack=True)
        relay(room.code, result)
    return {"success": True, "count": result.count}


@socketio.on("solvePuzzle")
def on_solve_puzzle(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.get(_room_code(data))
            result = room.solve_puzzle(_get_sid(), data.get("guess"))
        except GameError as exc:
            return reject("solvePuzzle", exc, ack=True)
        relay(room.code, result)
    return {"success": True, "correct": result.correct}


@socketio.on("nextPlayer")
def on_next_player(data=None):
    data = _payload(data)
    with ROOMS.lock:
        try:
            room = ROOMS.get(_room_code(data))
            result = room.next_player(_get_sid())
        except GameError as exc:
            return reject("nextPlayer", exc, ack=False)
        relay(room.code, result)


if __name__ == "__main__":
    logger.info("Wheel server running on %s:%s", HOST, PORT)
    socketio.run(app, host=HOST, port=PORT, debug=False)
