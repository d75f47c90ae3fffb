"""Session lifecycle: creating games, seating players, moves and cleanup.

The manager owns the seat table (one non-finished game per player and game
type) and delegates every state change to ``GameSessionStore.mutate``.
``on_finished(game, players)`` is called once per session when it reaches
OVER, after the session lock has been released.
"""

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .rules import RulesEngine, engine_for
from .store import GameSessionStore
from .types import (
    AlreadyInGame,
    GameError,
    GameInstance,
    GameOver,
    GameStatus,
    GameType,
    PlayerNotInSession,
    SessionFull,
    SessionNotFound,
)

logger = logging.getLogger(__name__)

FinishedHook = Callable[[GameInstance, Sequence[str]], None]


class GameManager:
    def __init__(
        self,
        store: GameSessionStore,
        engines: Mapping[GameType, RulesEngine],
        finished_ttl: float = 30.0,
        idle_ttl: float = 0.0,
        on_finished: Optional[FinishedHook] = None,
    ):
        self.store = store
        self.engines = dict(engines)
        self.finished_ttl = finished_ttl
        self.idle_ttl = idle_ttl
        self.on_finished = on_finished
        self._seats: Dict[Tuple[str, GameType], str] = {}
        self._seats_lock = threading.Lock()

    # -- seats --
    def _seat_holder(self, player_id: str, game_type: GameType) -> Optional[str]:
        """Return the id of the live, unfinished game the player sits in.

        A seat stays claimed while a join is in flight, before the player
        shows up in ``players``.
        """
        held = self._seats.get((player_id, game_type))
        if held is None:
            return None
        try:
            game = self.store.get(held)
        except SessionNotFound:
            return None
        if game.status == GameStatus.OVER:
            return None
        return held

    def _claim_seat(self, player_id: str, game_type: GameType, game_id: str) -> bool:
        """Reserve the seat for ``game_id``; return True if newly claimed."""
        with self._seats_lock:
            held = self._seat_holder(player_id, game_type)
            if held is not None and held != game_id:
                raise AlreadyInGame(f'{player_id} is already playing in game {held}')
            self._seats[(player_id, game_type)] = game_id
            return held != game_id

    def _release_seat(self, player_id: str, game_type: GameType, game_id: str) -> None:
        with self._seats_lock:
            if self._seats.get((player_id, game_type)) == game_id:
                del self._seats[(player_id, game_type)]

    def _release_all(self, game: GameInstance) -> None:
        for player_id in game.players:
            self._release_seat(player_id, game.game_type, game.id)

    def seated_games(self, player_id: str) -> List[str]:
        """Ids of the unfinished games the player holds a seat in."""
        with self._seats_lock:
            game_types = [gtype for (player, gtype) in self._seats if player == player_id]
            held = [self._seat_holder(player_id, gtype) for gtype in game_types]
        return sorted(game_id for game_id in held if game_id is not None)

    def _finished(self, game: GameInstance, players: Sequence[str]) -> None:
        self._release_all(game)
        logger.info(f"[game-over] game={game.id} winner={game.state.winner}")
        if self.on_finished is None:
            return
        try:
            self.on_finished(game, players)
        except Exception:
            logger.exception(f"[finished-hook] game={game.id} failed")

    # -- operations --
    def get_game(self, game_id: str) -> GameInstance:
        return self.store.get(game_id)

    def create_game(self, game_type: Any, player_id: str) -> GameInstance:
        """Create a session and seat the requesting player as its first member."""
        rules = engine_for(self.engines, game_type)
        with self._seats_lock:
            held = self._seat_holder(player_id, rules.game_type)
        if held is not None:
            raise AlreadyInGame(f'{player_id} is already playing in game {held}')
        game = self.store.create(rules.game_type, rules)
        try:
            game, _ = self.join_game(game.id, player_id)
        except GameError:
            self.store.evict(game.id)
            raise
        return game

    def join_game(self, game_id: str, player_id: str) -> Tuple[GameInstance, bool]:
        """Seat a player. Returns the snapshot and whether anything changed.

        Joining a game one is already a member of returns the current
        snapshot unchanged.
        """
        current = self.store.get(game_id)
        if current.has_player(player_id):
            return current, False
        newly_claimed = self._claim_seat(player_id, current.game_type, game_id)
        joined = False

        def _join(game: GameInstance) -> GameInstance:
            nonlocal joined
            if game.has_player(player_id):
                return game
            if game.status == GameStatus.OVER:
                raise GameOver(f'Game {game.id} is already over')
            rules = game.rules
            if game.status != GameStatus.WAITING or len(game.players) >= rules.max_players:
                raise SessionFull(f'Game {game.id} is full')
            players = game.players + (player_id,)
            state = game.state
            if len(players) >= rules.min_players:
                state = rules.start(state, players)
            joined = True
            return replace(game, players=players, state=state)

        try:
            updated = self.store.mutate(game_id, _join)
        except GameError:
            if newly_claimed:
                self._release_seat(player_id, current.game_type, game_id)
            raise
        if not joined:
            return updated, False
        logger.info(
            f"[join] game={game_id} player={player_id} players={len(updated.players)} status={updated.status.value}"
        )
        return updated, joined

    def leave_game(self, game_id: str, player_id: str) -> GameInstance:
        """Remove a player. Leaving an in-progress game forfeits it."""

        left = False
        forfeited_among: Tuple[str, ...] = ()

        def _leave(game: GameInstance) -> GameInstance:
            nonlocal left, forfeited_among
            if not game.has_player(player_id):
                return game
            players = tuple(p for p in game.players if p != player_id)
            state = game.state
            if state.status == GameStatus.IN_PROGRESS:
                state = game.rules.forfeit(state, game.players, player_id)
                forfeited_among = game.players
            left = True
            return replace(game, players=players, state=state)

        updated = self.store.mutate(game_id, _leave)
        if not left:
            # A join for this player may still be in flight and owns the seat
            logger.debug(f"[leave-noop] game={game_id} player={player_id}")
            return updated
        self._release_seat(player_id, updated.game_type, game_id)
        if forfeited_among:
            self._finished(updated, forfeited_among)
        elif updated.status == GameStatus.OVER:
            self._release_all(updated)
        logger.info(
            f"[leave] game={game_id} player={player_id} players={len(updated.players)} status={updated.status.value}"
        )
        return updated

    def submit_move(self, game_id: str, player_id: str, move: Any) -> GameInstance:
        def _move(game: GameInstance) -> GameInstance:
            if not game.has_player(player_id):
                raise PlayerNotInSession(f'{player_id} is not a player in game {game.id}')
            state = game.rules.apply_move(game.state, game.players, player_id, move)
            return replace(game, state=state)

        updated = self.store.mutate(game_id, _move)
        # Moves on a finished game raise GameOver, so OVER here is the transition
        if updated.status == GameStatus.OVER:
            self._finished(updated, updated.players)
        return updated

    def list_games(self, game_type: Any = None, status: Any = None) -> List[GameInstance]:
        gtype = GameType.parse(game_type) if game_type else None
        gstatus = GameStatus.parse(status) if status else None
        games = [
            g for g in self.store.snapshots()
            if (gtype is None or g.game_type == gtype) and (gstatus is None or g.status == gstatus)
        ]
        return sorted(games, key=lambda g: g.created_at)

    def collect_garbage(self, now: Optional[float] = None) -> List[str]:
        """Evict abandoned and idle sessions; return the evicted ids."""
        if now is None:
            now = self.store.clock()

        def _expired(game: GameInstance) -> bool:
            idle_for = now - game.updated_at
            if not game.players and game.status in (GameStatus.OVER, GameStatus.WAITING):
                return idle_for >= self.finished_ttl
            return bool(self.idle_ttl) and idle_for >= self.idle_ttl

        evicted = []
        for game in self.store.snapshots():
            if _expired(game) and self.store.evict(game.id, _expired):
                self._release_all(game)
                evicted.append(game.id)
        if evicted:
            logger.info(f"[gc] evicted={len(evicted)} live={len(self.store)}")
        return evicted
