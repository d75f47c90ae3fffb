"""Rules engines: pure state transitions for each supported game type.

An engine never mutates its inputs and performs no I/O, so it can be called
for different sessions concurrently. Illegal moves raise a ``MoveError``.
"""

from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Sequence

from .types import (
    GameOver,
    GameStatus,
    GameType,
    InvalidGameType,
    InvalidQuantity,
    NimMove,
    NimState,
    NotYourTurn,
)


class RulesEngine:
    """Capability interface shared by every game type."""

    game_type: GameType
    min_players = 2
    max_players = 2

    def initial_state(self) -> Any:
        raise NotImplementedError

    def start(self, state: Any, players: Sequence[str]) -> Any:
        raise NotImplementedError

    def parse_move(self, payload: Any) -> Any:
        raise NotImplementedError

    def apply_move(self, state: Any, players: Sequence[str], player_id: str, move: Any) -> Any:
        raise NotImplementedError

    def forfeit(self, state: Any, players: Sequence[str], leaver: str) -> Any:
        raise NotImplementedError


class NimRulesEngine(RulesEngine):
    """Bounded-take Nim on a single pile.

    ``last_take_wins`` selects the convention: when False (misere play) the
    player who empties the pile loses and the next player in turn order wins.
    """

    game_type = GameType.NIM

    def __init__(self, pile_size: int = 21, max_take: int = 3, last_take_wins: bool = False):
        if pile_size < 1:
            raise ValueError('pile_size must be positive')
        if max_take < 1:
            raise ValueError('max_take must be positive')
        self.pile_size = pile_size
        self.max_take = max_take
        self.last_take_wins = last_take_wins

    def initial_state(self) -> NimState:
        return NimState(
            status=GameStatus.WAITING,
            pile_size=self.pile_size,
            remaining_objects=self.pile_size,
        )

    def start(self, state: NimState, players: Sequence[str]) -> NimState:
        return replace(state, status=GameStatus.IN_PROGRESS, turn=players[0])

    def parse_move(self, payload: Any) -> NimMove:
        if isinstance(payload, NimMove):
            return payload
        if isinstance(payload, dict):
            payload = payload.get('num_objects')
        # bool is an int subclass; True must not mean "take one"
        if isinstance(payload, bool) or not isinstance(payload, int):
            raise InvalidQuantity('num_objects must be an integer')
        return NimMove(num_objects=payload)

    def legal_range(self, state: NimState) -> range:
        return range(1, min(self.max_take, state.remaining_objects) + 1)

    def apply_move(self, state: NimState, players: Sequence[str], player_id: str, move: Any) -> NimState:
        if state.status == GameStatus.OVER:
            raise GameOver('The game is already over')
        if state.status != GameStatus.IN_PROGRESS:
            raise GameOver('The game has not started yet')
        if player_id != state.turn:
            raise NotYourTurn(f'It is not your turn, waiting for {state.turn}')
        move = self.parse_move(move)
        allowed = self.legal_range(state)
        if move.num_objects not in allowed:
            raise InvalidQuantity(
                f'You may remove between {allowed.start} and {allowed.stop - 1} objects'
            )

        remaining = state.remaining_objects - move.num_objects
        moves = state.moves + ((player_id, move.num_objects),)
        if remaining == 0:
            return replace(
                state,
                status=GameStatus.OVER,
                remaining_objects=0,
                turn=None,
                winner=player_id if self.last_take_wins else _next_player(players, player_id),
                moves=moves,
            )
        return replace(
            state,
            remaining_objects=remaining,
            turn=_next_player(players, player_id),
            moves=moves,
        )

    def forfeit(self, state: NimState, players: Sequence[str], leaver: str) -> NimState:
        remaining_players = [p for p in players if p != leaver]
        return replace(
            state,
            status=GameStatus.OVER,
            turn=None,
            winner=remaining_players[0] if remaining_players else None,
            forfeited_by=leaver,
        )


def _next_player(players: Sequence[str], current: str) -> Optional[str]:
    if not players:
        return None
    idx = list(players).index(current)
    return players[(idx + 1) % len(players)]


def build_engines(config: Mapping[str, Any]) -> Dict[GameType, RulesEngine]:
    """Instantiate one engine per supported game type from app config."""
    return {
        GameType.NIM: NimRulesEngine(
            pile_size=int(config.get('NIM_PILE_SIZE', 21)),
            max_take=int(config.get('NIM_MAX_TAKE', 3)),
            last_take_wins=bool(config.get('NIM_LAST_TAKE_WINS', False)),
        ),
    }


def engine_for(engines: Mapping[GameType, RulesEngine], game_type: Any) -> RulesEngine:
    gtype = GameType.parse(game_type)
    try:
        return engines[gtype]
    except KeyError:
        raise InvalidGameType(f'Unsupported game type: {game_type}')
