import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from config import config
from extensions import db, login_manager, scheduler
from tasks import run_daily_rollover, expire_user_products

from routes.auth import auth_bp
from routes.main import main_bp
from routes.user import user_bp
from routes.admin import admin_bp

def _error(kind, message, status):
    return jsonify({'success': False, 'error': {'kind': kind, 'message': message}}), status

def create_app(config_name='default'):
    app = Flask(__name__)

    # Load Config
    app.config.from_object(config[config_name])
    os.makedirs(app.instance_path, exist_ok=True)

    # Init Extensions
    db.init_app(app)
    login_manager.init_app(app)

    # Register Blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(admin_bp)

    from models import User
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return _error('Unauthorized', login_manager.login_message, 401)

    # Error Handlers
    @app.errorhandler(404)
    def page_not_found(e):
        return _error('NotFound', 'Resource not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _error('MethodNotAllowed', 'Method not allowed', 405)

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.error('Server Error: {}'.format(e))
        return _error('InternalError', 'We are experiencing technical difficulties. Please try again later.', 500)

    # Logging
    if not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/earnhub.log', maxBytes=10240, backupCount=10)
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('EarnHub startup')

    # Register CLI Commands
    @app.cli.command('daily-rollover')
    def daily_rollover_command():
        """Move today's income to yesterday and reset daily counters."""
        count = run_daily_rollover(app)
        print(f"Rollover finished. Wallets updated: {count}")

    @app.cli.command('expire-products')
    def expire_products_command():
        """Flag user products whose validity has run out."""
        count = expire_user_products(app)
        print(f"Expiry finished. Products expired: {count}")

    # Scheduled Jobs (local midnight)
    if app.config['SCHEDULER_ENABLED']:
        tz = app.config['APP_TIMEZONE']
        scheduler.add_job(run_daily_rollover, 'cron', hour=0, minute=0, timezone=tz,
                          args=[app], id='daily_rollover', replace_existing=True)
        scheduler.add_job(expire_user_products, 'cron', hour=0, minute=5, timezone=tz,
                          args=[app], id='expire_user_products', replace_existing=True)
        if not scheduler.running:
            scheduler.start()
            app.logger.info('Scheduler started')

    return app

# Create App instance for Gunicorn
app = create_app(os.environ.get('FLASK_CONFIG', 'default'))
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
