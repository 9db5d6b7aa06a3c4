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

NAMESPACE = '/ws'
EXTENSION_KEY = 'improvboard'


def get_board():
    """The match-control core attached to the current application."""
    return current_app.extensions[EXTENSION_KEY]


def get_gateway():
    return current_app.extensions[EXTENSION_KEY + '.interop']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from improvboard.main import main
    flask_app.register_blueprint(main)

    from improvboard.api.state import state_api
    flask_app.register_blueprint(state_api, url_prefix='/api')

    from improvboard.api.interop import interop_api
    flask_app.register_blueprint(interop_api, url_prefix='/api/interop/mon-pacing')

    from improvboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from improvboard.models import Operator

    @login_manager.user_loader
    def load_operator(operator_id):
        return db.session.get(Operator, int(operator_id))

    board = _build_board(flask_app)
    flask_app.extensions[EXTENSION_KEY] = board
    flask_app.extensions[EXTENSION_KEY + '.interop'] = _build_gateway(flask_app, board)
    _start_clock_heartbeat(flask_app, board)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            operator = Operator(username=flask_app.config['DEFAULT_OPERATOR'])
            operator.set_password(flask_app.config['DEFAULT_OPERATOR_PASSWORD'])
            db.session.add(operator)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app


def _spawn(fn, *args):
    return socketio.start_background_task(fn, *args)


def _build_board(flask_app):
    from improvboard.services import Board
    from improvboard.services.persistence import SnapshotRepository
    from improvboard.services.report import ReportRenderer
    from improvboard.services.store import run_inline

    config = flask_app.config
    repository = SnapshotRepository(flask_app)
    report_dir = config.get('REPORT_DIR')
    board = Board(
        repository=repository,
        persist=config.get('PERSIST_STATE', True),
        report_renderer=ReportRenderer(report_dir) if report_dir else None,
        # Persistence and reports run inline under TESTING so tests see their effects.
        spawn=run_inline if config.get('TESTING') else _spawn,
        match_spawn=_spawn,
        sleep=socketio.sleep,
        tick_ms=int(config.get('MATCH_TIMER_TICK_MS', 100)),
        remote_source=config.get('INTEROP_SOURCE', 'mon-pacing'),
    )

    if config.get('LOAD_STATE_ON_BOOT'):
        try:
            snapshot = repository.load()
        except Exception:
            flask_app.logger.error('[state-load-fail] starting from defaults', exc_info=True)
            snapshot = None
        if snapshot and board.store.load(snapshot):
            flask_app.logger.info('[state-load] restored persisted snapshot')

    if config.get('SEED_DEFAULT_TEMPLATES'):
        board.templates.initialize_default_templates()

    def _forward(event, payload, room=None):
        socketio.emit(event, payload, to=room, namespace=NAMESPACE)

    board.broadcaster.subscribe(_forward)
    return board


def _build_gateway(flask_app, board):
    from improvboard.interop.monpacing import MonPacingGateway
    from improvboard.interop.records import load_category_map, record_interop

    return MonPacingGateway(
        board,
        source=flask_app.config.get('INTEROP_SOURCE', 'mon-pacing'),
        category_map=lambda: load_category_map(flask_app),
        audit=lambda kind, ok, data: record_interop(flask_app, kind, ok, data),
    )


def _start_clock_heartbeat(flask_app, board):
    interval = float(flask_app.config.get('CLOCK_TICK_SEC', 0) or 0)
    if interval <= 0:
        return
    if flask_app.config.get('TESTING') and not flask_app.config.get('ENABLE_TIMERS_IN_TESTS'):
        return

    def _heartbeat():
        while True:
            socketio.sleep(interval)
            try:
                board.clock.tick()
            except Exception:
                flask_app.logger.error('[clock-heartbeat-fail]', exc_info=True)

    socketio.start_background_task(_heartbeat)
    flask_app.logger.info(f"[clock-heartbeat] interval={interval}s")
