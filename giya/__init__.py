"""
Giya loyalty platform
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate, compress
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize caching (Redis when REDIS_URL is set, in-process otherwise)
    from .utils.cache import init_cache
    init_cache(app)

    # Initialize compression (gzip/brotli for responses)
    app.config['COMPRESS_MIMETYPES'] = ['application/json', 'text/html', 'text/plain']
    app.config['COMPRESS_LEVEL'] = 6
    app.config['COMPRESS_MIN_SIZE'] = 500  # Only compress responses > 500 bytes
    compress.init_app(app)

    # Session cookie or bearer token both need credentials on CORS requests
    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Request-ID'],
    )

    from .middleware import init_rate_limiter, init_request_id_tracking
    init_rate_limiter(app)
    init_request_id_tracking(app)

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Daily offer expiration (production, or ENABLE_SCHEDULER=true)
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    from .utils.errors import register_error_handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'giya'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    # Auth and profiles
    from .api.auth import auth_bp
    from .api.businesses import businesses_bp
    from .api.customers import customers_bp

    # Loyalty mechanics
    from .api.punch_cards import punch_cards_bp
    from .api.points import points_bp
    from .api.receipts import receipts_bp
    from .api.rewards import rewards_bp, redemptions_bp
    from .api.deals import deals_bp

    # Admin and discovery
    from .api.admin import admin_bp
    from .api.curated_lists import curated_lists_bp

    # Affiliate program (gated by AFFILIATES_ENABLED)
    from .api.affiliates import affiliates_bp

    # Notifications
    from .api.notifications import notifications_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(businesses_bp, url_prefix='/api/businesses')
    app.register_blueprint(customers_bp, url_prefix='/api/customers')

    app.register_blueprint(punch_cards_bp, url_prefix='/api/punch-cards')
    app.register_blueprint(points_bp, url_prefix='/api/points')
    app.register_blueprint(receipts_bp, url_prefix='/api/receipts')
    app.register_blueprint(rewards_bp, url_prefix='/api/rewards')
    app.register_blueprint(redemptions_bp, url_prefix='/api/redemptions')
    app.register_blueprint(deals_bp, url_prefix='/api/deals')

    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(curated_lists_bp, url_prefix='/api/curated-lists')

    app.register_blueprint(affiliates_bp, url_prefix='/api/affiliates')

    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    logger.info('Registered %d blueprints', len(app.blueprints))
