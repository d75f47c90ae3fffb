import threading
from typing import Dict, Optional, Set

from flask import current_app, has_app_context, request
from flask_login import current_user
from flask_socketio import ConnectionRefusedError, emit, join_room, leave_room

from gamehub import db, get_hub, socketio
from gamehub.games import GameError, GameInstance, SessionNotFound

NAMESPACE = '/ws'


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


class GameBroadcaster:
    """Fans committed snapshots out to Socket.IO rooms and tracks subscriptions.

    ``publish`` is installed as the session store's commit hook, so it runs
    while the session lock is held and rooms see updates in commit order.
    """

    def __init__(self, app, sio, namespace: str = NAMESPACE):
        self.app = app
        self.socketio = sio
        self.namespace = namespace
        self._games_by_sid: Dict[str, Set[str]] = {}
        self._player_by_sid: Dict[str, str] = {}
        self._lock = threading.Lock()

    # -- subscriptions --
    def connect(self, sid: str, player_id: str) -> None:
        with self._lock:
            self._player_by_sid[sid] = player_id
            self._games_by_sid.setdefault(sid, set())

    def track(self, sid: str, game_id: str) -> None:
        with self._lock:
            self._games_by_sid.setdefault(sid, set()).add(game_id)

    def untrack(self, sid: str, game_id: str) -> None:
        with self._lock:
            self._games_by_sid.get(sid, set()).discard(game_id)

    def is_tracked(self, sid: str, game_id: str) -> bool:
        with self._lock:
            return game_id in self._games_by_sid.get(sid, set())

    def disconnect(self, sid: str):
        """Forget a connection.

        Returns its player, the games it had joined, and whether that player
        still has another open connection.
        """
        with self._lock:
            player_id = self._player_by_sid.pop(sid, None)
            games = self._games_by_sid.pop(sid, set())
            still_connected = player_id is not None and player_id in self._player_by_sid.values()
        return player_id, sorted(games), still_connected

    # -- store hooks --
    def publish(self, previous: GameInstance, current: GameInstance) -> None:
        self.socketio.emit(
            'game_update',
            {'game_state': current.to_dict()},
            to=room_for(current.id),
            namespace=self.namespace,
        )

    def end_session(self, game: GameInstance) -> None:
        room = room_for(game.id)
        self.socketio.emit('session_ended', {'game_id': game.id}, to=room, namespace=self.namespace)
        self.socketio.close_room(room, namespace=self.namespace)
        with self._lock:
            for games in self._games_by_sid.values():
                games.discard(game.id)

    # -- manager hooks --
    def record_result(self, game: GameInstance, players) -> None:
        """Store a finished match. Runs outside the session lock."""
        if not has_app_context():
            with self.app.app_context():
                self.record_result(game, players)
            return
        from gamehub.models import MatchResult

        try:
            db.session.add(MatchResult.from_game(game, players))
            db.session.commit()
        except Exception:
            db.session.rollback()
            self.app.logger.exception(f"[history] game={game.id} could not record result")
            return
        self.app.logger.info(f"[history] game={game.id} winner={game.state.winner}")


# ---- Socket.IO handlers ----

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _player_id() -> Optional[str]:
    if current_user and current_user.is_authenticated:
        return current_user.username
    return None


def _game_id(data) -> Optional[str]:
    game_id = (data or {}).get('game_id')
    if not game_id:
        return None
    return str(game_id).strip().upper()


def _emit_error(player_id: Optional[str], exc: GameError) -> None:
    payload = exc.to_dict()
    payload['player'] = player_id
    emit('game_error', payload)


def _emit_bad_request(player_id: Optional[str], message: str) -> None:
    emit('game_error', {'player': player_id, 'error': message, 'code': 'BadRequest'})


def handle_connect(auth=None):
    player_id = _player_id()
    if player_id is None:
        raise ConnectionRefusedError('authentication required')
    get_hub().broadcaster.connect(_get_sid(), player_id)
    emit('connected', {'message': f'Connected to {NAMESPACE}', 'player': player_id})


def handle_disconnect(reason=None):
    hub = get_hub()
    player_id, games, still_connected = hub.broadcaster.disconnect(_get_sid())
    if not player_id:
        return
    if not still_connected:
        # Seats taken over HTTP are never tracked on a socket
        games = sorted(set(games) | set(hub.manager.seated_games(player_id)))
    for game_id in games:
        try:
            hub.manager.leave_game(game_id, player_id)
        except SessionNotFound:
            continue
        current_app.logger.info(f"[disconnect] game={game_id} player={player_id}")


def handle_create_game(data):
    player_id = _player_id()
    hub = get_hub()
    try:
        game = hub.manager.create_game((data or {}).get('game_type'), player_id)
    except GameError as exc:
        _emit_error(player_id, exc)
        return
    join_room(room_for(game.id))
    hub.broadcaster.track(_get_sid(), game.id)
    emit('game_created', {'game_id': game.id})
    emit('game_update', {'game_state': game.to_dict()})


def handle_join_game(data):
    player_id = _player_id()
    game_id = _game_id(data)
    if not game_id:
        _emit_bad_request(player_id, 'game_id is required')
        return
    hub = get_hub()
    sid = _get_sid()
    room = room_for(game_id)
    # Subscribe first so the joiner receives the broadcast of its own join
    join_room(room)
    try:
        game, joined = hub.manager.join_game(game_id, player_id)
    except GameError as exc:
        if not hub.broadcaster.is_tracked(sid, game_id):
            leave_room(room)
        _emit_error(player_id, exc)
        return
    hub.broadcaster.track(sid, game_id)
    if not joined:
        emit('game_update', {'game_state': game.to_dict()})


def handle_leave_game(data):
    player_id = _player_id()
    game_id = _game_id(data)
    if not game_id:
        _emit_bad_request(player_id, 'game_id is required')
        return
    hub = get_hub()
    leave_room(room_for(game_id))
    hub.broadcaster.untrack(_get_sid(), game_id)
    try:
        hub.manager.leave_game(game_id, player_id)
    except GameError as exc:
        _emit_error(player_id, exc)
        return
    emit('left', {'game_id': game_id})


def handle_make_move(data):
    player_id = _player_id()
    game_id = _game_id(data)
    if not game_id:
        _emit_bad_request(player_id, 'game_id is required')
        return
    try:
        get_hub().manager.submit_move(game_id, player_id, (data or {}).get('move'))
    except GameError as exc:
        _emit_error(player_id, exc)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('create_game', handle_create_game, namespace=NAMESPACE)
    socketio.on_event('join_game', handle_join_game, namespace=NAMESPACE)
    socketio.on_event('leave_game', handle_leave_game, namespace=NAMESPACE)
    socketio.on_event('make_move', handle_make_move, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
