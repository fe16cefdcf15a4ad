from flask import Flask
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

def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Stores, action log and clock engine live on app.extensions['stats']
    from scoreboard.services.stats import init_stats
    init_stats(flask_app, scheduler=scheduler)

    from scoreboard.main import main
    flask_app.register_blueprint(main)

    from scoreboard.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api')

    from scoreboard.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from scoreboard.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from scoreboard.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed one operator who owns a universal clock
            user = User(username='operator')
            user.set_password('password')
            db.session.add(user)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
