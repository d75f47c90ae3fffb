from datetime import datetime, timezone
import json

from flask_login import UserMixin

from gamehub import db, bcrypt


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class MatchResult(db.Model):
    """A finished game, recorded once when its session reaches OVER."""

    __tablename__ = 'match_result'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.String(16), nullable=False, index=True)
    game_type = db.Column(db.String(32), nullable=False)
    players = db.Column(db.Text, nullable=False)  # JSON-encoded list of usernames
    winner = db.Column(db.String(64), nullable=True)
    forfeited_by = db.Column(db.String(64), nullable=True)
    moves = db.Column(db.Text, nullable=True)  # JSON-encoded list of moves
    finished_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_game(cls, game, players):
        state = game.state.to_dict()
        return cls(
            game_id=game.id,
            game_type=game.game_type.value,
            players=json.dumps(list(players)),
            winner=state.get('winner'),
            forfeited_by=state.get('forfeited_by'),
            moves=json.dumps(state.get('moves') or []),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'game_type': self.game_type,
            'players': json.loads(self.players) if self.players else [],
            'winner': self.winner,
            'forfeited_by': self.forfeited_by,
            'moves': json.loads(self.moves) if self.moves else [],
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }
