from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from datetime import timedelta
import logging
import os
from dotenv import load_dotenv

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')

# Initialize extensions
# Store results outlive their session, so loaded attributes must not expire on commit
db = SQLAlchemy(session_options={'expire_on_commit': False})
migrate = Migrate()
jwt = JWTManager()

logger = logging.getLogger(__name__)


def create_app(config_name='development', config_overrides=None):
    # Load environment variables
    load_dotenv()

    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=os.getenv('LOG_LEVEL', 'INFO').upper()
    )

    # Initialize Flask app
    app = Flask(__name__)

    # Configure the app based on environment
    if config_name == 'testing':
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        app.config['TESTING'] = True
        app.config['FITTRACK_SCHEMA'] = 'create'
        app.config['BCRYPT_LOG_ROUNDS'] = 4
    else:
        app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///fittrack.db')
        app.config['FITTRACK_SCHEMA'] = 'migrate'
        app.config['BCRYPT_LOG_ROUNDS'] = int(os.getenv('BCRYPT_LOG_ROUNDS', '12'))

    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-key-please-change')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-please-change-before-deploying')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(days=1)
    app.config['FITTRACK_STORE_WORKERS'] = int(os.getenv('FITTRACK_STORE_WORKERS', '4'))
    app.config['FITTRACK_LIVE_GRACE_SECONDS'] = float(os.getenv('FITTRACK_LIVE_GRACE_SECONDS', '5'))
    app.config['FITTRACK_STREAM_KEEPALIVE_SECONDS'] = float(
        os.getenv('FITTRACK_STREAM_KEEPALIVE_SECONDS', '15')
    )

    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)
    CORS(app)
    jwt.init_app(app)

    # Import after db initialization to avoid circular imports
    from fittrack.errors import register_error_handlers
    from fittrack.routes.auth import auth_bp
    from fittrack.routes.weight import weight_bp
    from fittrack.services.store import WeightStore

    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(weight_bp, url_prefix='/api/weight')

    store = WeightStore(app)
    app.extensions['weight_store'] = store
    store.open()
    logger.info('FitTrack app created (config=%s)', config_name)

    return app


def get_store(app=None):
    """Return the weight store attached to ``app`` (or the current app)."""
    if app is None:
        app = current_app
    return app.extensions['weight_store']

