"""Room game-state machine for the wheel server.

Everything in here is transport agnostic: callers pass in the acting
connection id and get back an ``ActionResult`` describing what to tell the
room. Rejected actions raise a ``GameError`` before any state is touched.
"""

import logging
import random
import string
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from wheel import SEGMENT_BANKRUPT, SEGMENT_LOSE_TURN, SEGMENT_MONEY, WHEEL_SEGMENTS, WheelSegment, draw_index

logger = logging.getLogger(__name__)

MAX_PLAYERS = 6
SOLVE_BONUS = 1000
ROOM_CODE_LENGTH = 5
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MASK_CHAR = "_"
MAX_NAME_LENGTH = 24

STATUS_WAITING = "waiting"
STATUS_SPINNING = "spinning"
STATUS_GUESSING = "guessing"
STATUS_SOLVED = "solved"

ALPHABET = set(string.ascii_uppercase)


# ----------------------------
# Errors
# ----------------------------
class GameError(Exception):
    """Base class for rejected actions.

    ``silent`` errors are never reported back to the caller.
    """

    silent = False
    default_message = "Action rejected."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class RoomNotFound(GameError):
    default_message = "Room not found"


class RoomFull(GameError):
    default_message = f"Room full (max {MAX_PLAYERS})."


class Unauthorized(GameError):
    silent = True
    default_message = "Not allowed for this connection."


class InvalidState(GameError):
    silent = True
    default_message = "Not allowed right now."


class InvalidInput(GameError):
    default_message = "Invalid input."


# ----------------------------
# Masking and turn order
# ----------------------------
def mask_phrase(phrase: str, revealed: Set[str]) -> str:
    return "".join(ch if ch == " " or ch in revealed else MASK_CHAR for ch in phrase)


def next_player_id(players: Dict[str, Any], current_id: Optional[str]) -> Optional[str]:
    """Return the id after ``current_id`` in join order, wrapping around.

    An id that is no longer in ``players`` maps to the first remaining player.
    """
    ids = list(players)
    if not ids:
        return None
    if current_id not in players:
        return ids[0]
    return ids[(ids.index(current_id) + 1) % len(ids)]


def clean_name(name: Any, seat: int) -> str:
    name = str(name or "").strip()[:MAX_NAME_LENGTH]
    return name or f"Player {seat}"


# ----------------------------
# Game model
# ----------------------------
@dataclass
class Player:
    name: str
    score: int = 0


@dataclass
class Spin:
    index: int
    segment: WheelSegment

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, **self.segment.to_dict()}


@dataclass
class ActionResult:
    """What an accepted action produced, for the transport to relay."""

    messages: List[str] = field(default_factory=list)
    spin: Optional[Spin] = None
    count: Optional[int] = None
    correct: Optional[bool] = None
    room_deleted: bool = False


@dataclass
class Room:
    code: str
    host_id: str

    players: Dict[str, Player] = field(default_factory=dict)
    category: str = ""
    phrase: str = ""
    revealed_letters: Set[str] = field(default_factory=set)
    masked_phrase: str = ""
    current_player_id: Optional[str] = None
    current_spin: Optional[Spin] = None
    status: str = STATUS_WAITING
    solved: bool = False

    # --- guards ---
    def require_host(self, sid: str):
        if sid != self.host_id:
            raise Unauthorized("Host only.")

    def require_current_player(self, sid: str):
        if sid is None or sid != self.current_player_id or sid not in self.players:
            raise Unauthorized("Only the current player can do that.")

    def player_name(self, sid: Optional[str]) -> str:
        p = self.players.get(sid)
        return p.name if p else "Nobody"

    # --- turn helpers ---
    def clear_turn_state(self):
        self.current_spin = None
        if not self.solved:
            self.status = STATUS_WAITING

    def advance_turn(self, from_id: Optional[str] = None):
        start = self.current_player_id if from_id is None else from_id
        self.current_player_id = next_player_id(self.players, start)
        self.clear_turn_state()

    def add_player(self, sid: str, name: Any) -> Player:
        if sid in self.players:
            p = self.players[sid]
            p.name = clean_name(name, list(self.players).index(sid) + 1)
            return p
        if len(self.players) >= MAX_PLAYERS:
            raise RoomFull()
        p = Player(name=clean_name(name, len(self.players) + 1))
        self.players[sid] = p
        if self.current_player_id is None:
            self.current_player_id = sid
        return p

    # --- actions ---
    def set_puzzle(self, sid: str, category: Any, phrase: Any) -> ActionResult:
        self.require_host(sid)
        if not isinstance(phrase, str) or not phrase.strip():
            raise InvalidInput("A puzzle phrase is required.")

        self.category = str(category or "")
        self.phrase = phrase.upper()
        self.revealed_letters = set()
        self.masked_phrase = mask_phrase(self.phrase, self.revealed_letters)
        self.status = STATUS_WAITING
        self.solved = False
        self.current_spin = None
        logger.info("Puzzle set for room %s: [%s] %d chars", self.code, self.category, len(self.phrase))
        return ActionResult()

    def spin_wheel(self, sid: str, rng: Any = random) -> ActionResult:
        self.require_current_player(sid)
        if self.status == STATUS_SPINNING or self.solved:
            raise InvalidState("The wheel cannot be spun now.")
        if not self.phrase:
            raise InvalidState("No puzzle has been set.")

        idx = draw_index(rng)
        segment = WHEEL_SEGMENTS[idx]
        self.current_spin = Spin(idx, segment)
        self.status = STATUS_SPINNING
        result = ActionResult(spin=self.current_spin)
        name = self.player_name(sid)
        logger.info("Room %s: %s spun %s", self.code, name, segment.label)

        if segment.type == SEGMENT_BANKRUPT:
            self.players[sid].score = 0
            self.advance_turn(sid)
            result.messages.append(f"{name} hit BANKRUPT! Score reset to 0. Next player's turn.")
        elif segment.type == SEGMENT_LOSE_TURN:
            self.advance_turn(sid)
            result.messages.append(f"{name} loses their turn! Next player's turn.")
        else:
            self.status = STATUS_GUESSING
        return result

    def guess_letter(self, sid: str, letter: Any) -> ActionResult:
        self.require_current_player(sid)
        if self.status != STATUS_GUESSING:
            raise InvalidState("Spin before guessing a letter.")

        upper = str(letter or "").upper()
        if len(upper) != 1 or upper not in ALPHABET:
            raise InvalidInput("Invalid letter.")
        if upper in self.revealed_letters:
            raise InvalidInput("Letter already used.")

        self.revealed_letters.add(upper)
        count = self.phrase.count(upper)
        name = self.player_name(sid)
        result = ActionResult(count=count)

        seg = self.current_spin.segment if self.current_spin else None
        if count > 0 and seg is not None and seg.type == SEGMENT_MONEY:
            gain = seg.value * count
            self.players[sid].score += gain
            result.messages.append(f"{name} found {count} x {upper}! (+${gain})")
        elif count == 0:
            result.messages.append(f"{name} guessed {upper} but it's not in the puzzle.")
            self.current_player_id = next_player_id(self.players, sid)

        self.masked_phrase = mask_phrase(self.phrase, self.revealed_letters)
        self.current_spin = None
        self.status = STATUS_WAITING

        if self.masked_phrase == self.phrase:
            self.solved = True
            self.status = STATUS_SOLVED
            result.messages.append("The puzzle has been fully revealed!")
            logger.info("Room %s: puzzle fully revealed", self.code)
        return result

    def solve_puzzle(self, sid: str, guess: Any) -> ActionResult:
        self.require_current_player(sid)
        if self.solved:
            raise InvalidState("The puzzle is already solved.")
        if not isinstance(guess, str) or not guess.strip():
            raise InvalidInput("Type a solve attempt.")

        correct = guess.strip().upper() == self.phrase
        name = self.player_name(sid)
        result = ActionResult(correct=correct)

        if correct:
            self.solved = True
            self.status = STATUS_SOLVED
            self.masked_phrase = self.phrase
            self.current_spin = None
            self.players[sid].score += SOLVE_BONUS
            result.messages.append(f"{name} SOLVED THE PUZZLE! (+${SOLVE_BONUS} bonus)")
            logger.info("Room %s: solved by %s", self.code, name)
        else:
            self.advance_turn(sid)
            result.messages.append(f"{name} tried to solve but was wrong. Next player's turn.")
        return result

    def next_player(self, sid: str) -> ActionResult:
        self.require_host(sid)
        self.advance_turn()
        return ActionResult(messages=["Host advanced to next player."])

    def remove_player(self, sid: str) -> ActionResult:
        """Drop a departing connection, handing the turn on if it was theirs."""
        p = self.players.get(sid)
        if p is None:
            return ActionResult()
        was_current = self.current_player_id == sid
        successor = next_player_id(self.players, sid)
        del self.players[sid]
        if was_current:
            self.current_player_id = successor if successor in self.players else None
            self.clear_turn_state()
        return ActionResult(messages=[f"{p.name} left the game."])


# ----------------------------
# Registry
# ----------------------------
class RoomRegistry:
    """Process-wide map of room code to Room.

    Callers hold ``lock`` for the whole read-modify-write of an action.
    """

    def __init__(self, rng: Any = None):
        self.rooms: Dict[str, Room] = {}
        self.lock = threading.RLock()
        self.rng = rng or random

    def __contains__(self, code: str) -> bool:
        return code in self.rooms

    def __len__(self) -> int:
        return len(self.rooms)

    def clear(self):
        self.rooms.clear()

    def generate_code(self) -> str:
        while True:
            code = "".join(self.rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code

    def create_room(self, host_id: str) -> Room:
        room = Room(code=self.generate_code(), host_id=host_id)
        self.rooms[room.code] = room
        logger.info("Room created: %s by host %s", room.code, host_id)
        return room

    def get(self, code: Any) -> Room:
        room = self.rooms.get(code) if isinstance(code, str) else None
        if room is None:
            raise RoomNotFound()
        return room

    def find(self, code: Any) -> Optional[Room]:
        return self.rooms.get(code) if isinstance(code, str) else None

    def join_room(self, code: Any, sid: str, name: Any) -> Room:
        room = self.get(code)
        p = room.add_player(sid, name)
        logger.info("%s joined room %s", p.name, room.code)
        return room

    def delete_room(self, code: str):
        if self.rooms.pop(code, None) is not None:
            logger.info("Deleted room %s", code)

    def handle_disconnect(self, sid: str) -> Dict[str, ActionResult]:
        """Remove ``sid`` from every room it belongs to.

        Returns the per-room results; ``room_deleted`` marks rooms that were
        dropped because nobody was left in them.
        """
        results: Dict[str, ActionResult] = {}
        for code, room in list(self.rooms.items()):
            if sid in room.players:
                result = room.remove_player(sid)
            elif room.host_id == sid and not room.players:
                result = ActionResult()
            else:
                continue
            if not room.players:
                self.delete_room(code)
                result.room_deleted = True
            results[code] = result
        return results


ROOMS = RoomRegistry()
