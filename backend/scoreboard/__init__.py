from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from scoreboard.main import main
    flask_app.register_blueprint(main)

    from scoreboard.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from scoreboard.api.ratings import ratings
    flask_app.register_blueprint(ratings, url_prefix='/api/ratings')

    from scoreboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from scoreboard.services.errors import RatingServiceError

    @flask_app.errorhandler(RatingServiceError)
    def handle_service_error(exc):
        db.session.rollback()
        return jsonify({'success': False, 'error': exc.message}), exc.status_code

    @flask_app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        db.session.rollback()
        flask_app.logger.exception(f"[unhandled] {type(exc).__name__}: {exc}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    from scoreboard.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from scoreboard.models import Federation, Club, Player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for u in ['testuser1', 'testuser2', 'testuser3']:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            federation = Federation(name='Demo Federation', country='Nowhere')
            club = Club(name='Demo Club', federation=federation)
            db.session.add(club)
            for i in range(1, 11):
                db.session.add(Player(name=f'Player {i}', nickname=f'p{i}', club=club))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('ratings-reconcile')
    def ratings_reconcile_command():
        """Recomputes every rating whose last recompute failed."""
        from scoreboard.services.ratings.reconcile import reconcile_stale_ratings
        with flask_app.app_context():
            fixed = reconcile_stale_ratings()
            print(f'Reconciled {len(fixed)} rating(s): {fixed}')

    @click.command('ratings-recompute')
    @click.argument('rating_id', type=int)
    def ratings_recompute_command(rating_id):
        """Recomputes one rating from its current games."""
        from scoreboard.services.ratings.recompute import recompute_rating
        with flask_app.app_context():
            players = recompute_rating(rating_id)
            print(f'Rating {rating_id} recomputed: {players} player(s)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(ratings_reconcile_command)
    flask_app.cli.add_command(ratings_recompute_command)

    from scoreboard.services.ratings.reconcile import start_reconcile_worker
    start_reconcile_worker(flask_app)

    return flask_app
