"""Shared game types: identifiers, snapshots and the error taxonomy."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class GameType(str, Enum):
    NIM = 'NIM'

    @classmethod
    def parse(cls, value: Any) -> 'GameType':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidGameType(f'Unsupported game type: {value}')


class GameStatus(str, Enum):
    WAITING = 'WAITING'
    IN_PROGRESS = 'IN_PROGRESS'
    OVER = 'OVER'

    @classmethod
    def parse(cls, value: Any) -> 'GameStatus':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidStatus(f'Unknown status: {value}')


class GameError(Exception):
    """Base class for errors routed back to the player whose command failed."""

    code = 'GameError'
    http_status = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> Dict[str, str]:
        return {'code': self.code, 'error': self.message}


class SessionNotFound(GameError):
    code = 'SessionNotFound'
    http_status = 404


class InvalidGameType(GameError):
    code = 'InvalidGameType'
    http_status = 400


class InvalidStatus(GameError):
    code = 'InvalidStatus'
    http_status = 400


class SessionFull(GameError):
    code = 'SessionFull'
    http_status = 409


class AlreadyInGame(GameError):
    code = 'AlreadyInGame'
    http_status = 409


class PlayerNotInSession(GameError):
    code = 'PlayerNotInSession'
    http_status = 403


class MoveError(GameError):
    """Raised by a rules engine when a move cannot be applied."""


class NotYourTurn(MoveError):
    code = 'NotYourTurn'
    http_status = 409


class InvalidQuantity(MoveError):
    code = 'InvalidQuantity'
    http_status = 400


class GameOver(MoveError):
    code = 'GameOver'
    http_status = 409


@dataclass(frozen=True)
class NimMove:
    num_objects: int


@dataclass(frozen=True)
class NimState:
    status: GameStatus
    pile_size: int
    remaining_objects: int
    turn: Optional[str] = None
    winner: Optional[str] = None
    moves: Tuple[Tuple[str, int], ...] = ()
    forfeited_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'pile_size': self.pile_size,
            'remaining_objects': self.remaining_objects,
            'turn': self.turn,
            'winner': self.winner,
            'moves': [{'player': p, 'num_objects': n} for p, n in self.moves],
            'forfeited_by': self.forfeited_by,
        }


@dataclass(frozen=True)
class GameInstance:
    """Immutable snapshot of one session at a point in commit order."""

    id: str
    game_type: GameType
    players: Tuple[str, ...]
    state: Any
    rules: Any = field(repr=False, compare=False)
    version: int = 0
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def status(self) -> GameStatus:
        return self.state.status

    def has_player(self, player_id: str) -> bool:
        return player_id in self.players

    def to_dict(self) -> Dict[str, Any]:
        return {
            'game_id': self.id,
            'game_type': self.game_type.value,
            'players': list(self.players),
            'version': self.version,
            'state': self.state.to_dict(),
        }
