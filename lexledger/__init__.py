import logging

from flask import Flask
from flask_login import LoginManager
from flask_migrate import Migrate

from .models import db

# Initialize extensions
migrate = Migrate()
login_manager = LoginManager()


def create_app(config_class=None):
    # Create and configure the app
    app = Flask(__name__)

    if config_class is None:
        from .config import Config
        config_class = Config
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Register blueprints and routes
    from . import auth, routes
    app.register_blueprint(auth.bp)
    app.register_blueprint(routes.bp)

    # Register error handlers
    from .errors import bp as errors_bp
    app.register_blueprint(errors_bp)

    return app
