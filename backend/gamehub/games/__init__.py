"""Game session core: rules engines, session store and lifecycle.

This package holds framework-free game logic that is used by HTTP routes and
socket handlers, keeping transport concerns separated from core game
mechanics.
"""

from .lifecycle import GameManager
from .rules import NimRulesEngine, RulesEngine, build_engines
from .store import GameSessionStore
from .types import (
    AlreadyInGame,
    GameError,
    GameInstance,
    GameOver,
    GameStatus,
    GameType,
    InvalidGameType,
    InvalidQuantity,
    InvalidStatus,
    MoveError,
    NimMove,
    NimState,
    NotYourTurn,
    PlayerNotInSession,
    SessionFull,
    SessionNotFound,
)

__all__ = [
    'AlreadyInGame',
    'GameError',
    'GameInstance',
    'GameManager',
    'GameOver',
    'GameSessionStore',
    'GameStatus',
    'GameType',
    'InvalidGameType',
    'InvalidQuantity',
    'InvalidStatus',
    'MoveError',
    'NimMove',
    'NimRulesEngine',
    'NimState',
    'NotYourTurn',
    'PlayerNotInSession',
    'RulesEngine',
    'SessionFull',
    'SessionNotFound',
    'build_engines',
]
