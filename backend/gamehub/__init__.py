from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


class GameHub:
    """Per-app owner of the session store, lifecycle manager and broadcaster."""

    def __init__(self, store, manager, broadcaster):
        self.store = store
        self.manager = manager
        self.broadcaster = broadcaster


def get_hub() -> GameHub:
    return current_app.extensions['gamehub']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Game session core, owned by this app instance
    from gamehub.games import GameManager, GameSessionStore, build_engines
    from gamehub.socketio_events import GameBroadcaster, register_socketio_handlers

    broadcaster = GameBroadcaster(flask_app, socketio)
    store = GameSessionStore(on_commit=broadcaster.publish, on_evict=broadcaster.end_session)
    manager = GameManager(
        store,
        build_engines(flask_app.config),
        finished_ttl=float(flask_app.config.get('FINISHED_GAME_TTL_SEC', 30)),
        idle_ttl=float(flask_app.config.get('IDLE_GAME_TTL_SEC', 0)),
        on_finished=broadcaster.record_result,
    )
    flask_app.extensions['gamehub'] = GameHub(store, manager, broadcaster)

    from gamehub.main import main
    flask_app.register_blueprint(main)

    from gamehub.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    register_socketio_handlers()

    from gamehub.games.scheduler import start_session_sweeper
    start_session_sweeper(flask_app, manager)

    from gamehub.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for name in ['testuser1', 'testuser2', 'testuser3']:
                user = User(username=name)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
