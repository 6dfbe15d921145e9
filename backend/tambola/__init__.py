from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from tambola.main import main
    flask_app.register_blueprint(main)

    from tambola.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    testing = flask_app.config.get('TESTING', False)

    # One game service per app: room registry, ticket pool, timers and broadcasts
    from tambola.broadcast import SocketIOBroadcaster
    from tambola.services.game.pool import TicketPool
    from tambola.services.game.scheduler import SocketIOTimers
    from tambola.services.game.service import GameService

    namespaces = ['/ws', '/'] if testing else ['/ws']
    pool = TicketPool()
    flask_app.extensions['tambola'] = GameService(
        pool,
        SocketIOBroadcaster(socketio, namespaces),
        SocketIOTimers(socketio, flask_app),
        config=flask_app.config,
    )

    # Register Socket.IO event handlers
    from tambola.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=testing)

    autoseed = int(flask_app.config.get('POOL_AUTOSEED', 0))
    if autoseed > 0:
        with flask_app.app_context():
            db.create_all()
            if pool.remaining() == 0:
                pool.seed(autoseed, max_attempts=flask_app.config.get('GENERATOR_MAX_ATTEMPTS', 10))
                flask_app.logger.info(f"[pool-autoseed] seeded={autoseed}")

    @click.command('pool-seed')
    @click.option('--count', default=500, show_default=True, help='Number of grids to generate.')
    @click.option('--file', 'path', type=click.Path(exists=True, dir_okay=False),
                  help='Load grids from a JSON list of 3x9 layouts instead of generating them.')
    @click.option('--reset', is_flag=True, help='Drop and recreate the pool table first.')
    def pool_seed_command(count, path, reset):
        """Fills the shared ticket pool."""
        import json
        from tambola.services.game.layout import Grid

        with flask_app.app_context():
            if reset:
                db.drop_all()
            db.create_all()
            if path:
                with open(path, encoding='utf-8') as fh:
                    added = pool.add(Grid.from_list(rows) for rows in json.load(fh))
            else:
                added = pool.seed(count, max_attempts=flask_app.config.get('GENERATOR_MAX_ATTEMPTS', 10))
            click.echo(f'Added {added} tickets; pool now holds {pool.remaining()}.')

    flask_app.cli.add_command(pool_seed_command)

    return flask_app
