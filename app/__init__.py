from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
import logging
import os
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()


def _credentials_from_env():
    """Collect DeepL keys in rotation order."""
    keys = os.getenv('DEEPL_AUTH_KEYS', '')
    credentials = [k.strip() for k in keys.split(',') if k.strip()]
    for name in ('DEEPL_AUTH_KEY', 'DEEPL_AUTH_KEY_2'):
        value = os.getenv(name, '').strip()
        if value and value not in credentials:
            credentials.append(value)
    return credentials


def create_app(config_name='development'):
    app = Flask(__name__)

    # Config
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
        'DATABASE_URL',
        'sqlite:///listings.db'
    )
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['REDIS_URL'] = os.getenv('REDIS_URL')
    app.config['SOURCE_LANGUAGE'] = 'en'
    app.config['AR_CACHE_TTL'] = int(os.getenv('AR_CACHE_TTL', 365 * 24 * 60 * 60))
    app.config['DEEPL_AUTH_KEYS'] = _credentials_from_env()
    app.config['DEEPL_API_URL'] = os.getenv('DEEPL_API_URL')
    app.config['TRANSLATION_MAX_CONCURRENCY'] = int(os.getenv('TRANSLATION_MAX_CONCURRENCY', 5))
    app.config['TRANSLATION_ROTATION_BACKOFF'] = float(os.getenv('TRANSLATION_ROTATION_BACKOFF', 0.5))
    app.config['TRANSLATION_TIMEOUT'] = float(os.getenv('TRANSLATION_TIMEOUT', 10))
    app.config['FANOUT_WORKERS'] = int(os.getenv('FANOUT_WORKERS', 2))
    app.config['FANOUT_EAGER'] = os.getenv('FANOUT_EAGER', 'false').lower() in ('true', '1', 'yes')
    app.config['FANOUT_MAX_RETRIES'] = int(os.getenv('FANOUT_MAX_RETRIES', 0))
    app.config['ADMIN_EMAIL'] = os.getenv('ADMIN_EMAIL', os.getenv('SMTP_USER', ''))

    if config_name == 'testing':
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
        app.config['REDIS_URL'] = None
        app.config['DEEPL_AUTH_KEYS'] = []
        app.config['FANOUT_EAGER'] = True
        app.config['TRANSLATION_ROTATION_BACKOFF'] = 0

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    CORS(app)

    from app.services.redis_client import CacheClient
    from app.services.translation import TranslationGateway
    from app.services.fanout import FanoutQueue
    from app.services.invalidation import register_fanout_handlers

    CacheClient(app.config['REDIS_URL'], ttl=app.config['AR_CACHE_TTL']).init_app(app)
    TranslationGateway(
        app.config['DEEPL_AUTH_KEYS'],
        api_url=app.config['DEEPL_API_URL'],
        max_concurrency=app.config['TRANSLATION_MAX_CONCURRENCY'],
        rotation_backoff=app.config['TRANSLATION_ROTATION_BACKOFF'],
        timeout=app.config['TRANSLATION_TIMEOUT'],
    ).init_app(app)
    fanout = FanoutQueue(
        workers=app.config['FANOUT_WORKERS'],
        eager=app.config['FANOUT_EAGER'],
        max_retries=app.config['FANOUT_MAX_RETRIES'],
    )
    fanout.init_app(app)
    register_fanout_handlers(fanout)

    # Create tables with error handling
    with app.app_context():
        from app import models  # noqa: F401
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning(f"Could not create database tables: {e}")

    # Register routes
    from app.routes import register_routes
    from app.utils.errors import register_error_handlers
    register_routes(app)
    register_error_handlers(app)

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        from app.services.redis_client import get_cache
        from app.services.translation import get_gateway
        return {
            'status': 'ok',
            'cache_ready': get_cache().ready,
            'translation_enabled': get_gateway().enabled,
        }, 200

    return app
