from flask import Flask, jsonify, g
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=flask_app.config.get('CORS_ORIGINS', []))

    # Import and register blueprints here
    from monopay.api.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/api/auth')

    from monopay.api.friends import friends
    flask_app.register_blueprint(friends, url_prefix='/api/friends')

    from monopay.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    @flask_app.route('/')
    def index():
        return jsonify({'message': 'MonoPay backend running'})

    # Bearer tokens are resolved per request; there is no server-side session
    from monopay.models import User
    from monopay.security import user_from_authorization_header
    from monopay.errors import MonoPayError

    @login_manager.request_loader
    def load_user_from_request(req):
        return user_from_authorization_header(req.headers.get('Authorization'))

    @login_manager.unauthorized_handler
    def unauthorized():
        code, message = g.get('auth_failure', ('UNAUTHENTICATED', 'No token provided'))
        return jsonify({'error': message, 'code': code, 'kind': 'AUTH'}), 401

    @flask_app.errorhandler(MonoPayError)
    def handle_monopay_error(exc):
        if exc.status_code >= 500:
            db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description, 'code': exc.name.upper().replace(' ', '_')}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[error] unhandled {type(exc).__name__}: {exc}")
        return jsonify({'error': 'Something went wrong. Please try again.', 'code': 'INTERNAL'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u, display_name=u.capitalize())
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
