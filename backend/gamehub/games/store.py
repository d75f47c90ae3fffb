"""In-memory registry of live game sessions.

Each session has its own lock; ``mutate`` is the only way to change a
session and runs the caller's transition, the commit and the commit hook while
holding it. The registry lock only guards insertion and removal of slots.
"""

import logging
import random
import string
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .types import GameError, GameInstance, GameType, SessionNotFound

logger = logging.getLogger(__name__)

CommitHook = Callable[[GameInstance, GameInstance], None]
EvictHook = Callable[[GameInstance], None]


def generate_game_code(length: int = 6) -> str:
    """Generate a short game code; uniqueness is checked by the store."""
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


class _Slot:
    __slots__ = ('lock', 'game', 'alive')

    def __init__(self, game: GameInstance):
        self.lock = threading.Lock()
        self.game = game
        self.alive = True


class GameSessionStore:
    def __init__(
        self,
        on_commit: Optional[CommitHook] = None,
        on_evict: Optional[EvictHook] = None,
        clock: Callable[[], float] = time.monotonic,
        code_length: int = 6,
    ):
        self._slots: Dict[str, _Slot] = {}
        self._registry_lock = threading.Lock()
        self.on_commit = on_commit
        self.on_evict = on_evict
        self.clock = clock
        self.code_length = code_length

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, game_id: str) -> bool:
        return game_id in self._slots

    def create(self, game_type: GameType, rules) -> GameInstance:
        now = self.clock()
        with self._registry_lock:
            while True:
                code = generate_game_code(self.code_length)
                if code not in self._slots:
                    break
            game = GameInstance(
                id=code,
                game_type=game_type,
                players=(),
                state=rules.initial_state(),
                rules=rules,
                created_at=now,
                updated_at=now,
            )
            self._slots[code] = _Slot(game)
        logger.info(f"[create] game={code} type={game_type.value}")
        return game

    def get(self, game_id: str) -> GameInstance:
        slot = self._slots.get(game_id)
        if slot is None or not slot.alive:
            raise SessionNotFound(f'Game {game_id} not found')
        return slot.game

    def snapshots(self) -> List[GameInstance]:
        with self._registry_lock:
            slots = list(self._slots.values())
        return [s.game for s in slots if s.alive]

    def mutate(self, game_id: str, fn: Callable[[GameInstance], GameInstance]) -> GameInstance:
        """Apply ``fn`` to the current snapshot with exclusive access.

        ``fn`` returns the next snapshot, or the same object to leave the
        session untouched, or raises ``GameError`` to reject the change.
        """
        slot = self._slots.get(game_id)
        if slot is None:
            raise SessionNotFound(f'Game {game_id} not found')
        with slot.lock:
            if not slot.alive:
                raise SessionNotFound(f'Game {game_id} not found')
            previous = slot.game
            result = fn(previous)
            if result is previous:
                return previous
            if result.id != previous.id:
                raise GameError('Session id cannot change')
            committed = replace(result, version=previous.version + 1, updated_at=self.clock())
            slot.game = committed
            if self.on_commit is not None:
                try:
                    self.on_commit(previous, committed)
                except Exception:
                    logger.exception(f"[commit-hook] game={game_id} version={committed.version} failed")
            return committed

    def evict(self, game_id: str, predicate: Optional[Callable[[GameInstance], bool]] = None) -> bool:
        """Remove a session if ``predicate`` holds for its current snapshot."""
        slot = self._slots.get(game_id)
        if slot is None:
            return False
        with slot.lock:
            if not slot.alive:
                return False
            if predicate is not None and not predicate(slot.game):
                return False
            slot.alive = False
            game = slot.game
            with self._registry_lock:
                self._slots.pop(game_id, None)
        logger.info(f"[evict] game={game_id} status={game.status.value} players={len(game.players)}")
        if self.on_evict is not None:
            try:
                self.on_evict(game)
            except Exception:
                logger.exception(f"[evict-hook] game={game_id} failed")
        return True
