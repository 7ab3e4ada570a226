import logging
import os

from flask import Flask

from config import Config
from splitledger.extensions import db, login_manager
from splitledger.log_config import setup_logging


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    os.makedirs(app.instance_path, exist_ok=True)

    setup_logging(app)
    logger = logging.getLogger(__name__)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from splitledger.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    from splitledger.routes import fail, register_error_handlers

    @login_manager.unauthorized_handler
    def unauthorized():
        return fail('unauthorized', 401)

    # Register blueprints
    from splitledger.routes.auth import auth_bp
    from splitledger.routes.groups import groups_bp
    from splitledger.routes.expenses import expenses_bp
    from splitledger.routes.settlements import settlements_bp
    from splitledger.routes.balances import balances_bp
    from splitledger.routes.activity import activity_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(settlements_bp)
    app.register_blueprint(balances_bp)
    app.register_blueprint(activity_bp)

    register_error_handlers(app)

    with app.app_context():
        db.create_all()
        logger.info("Database tables ready")

    return app
