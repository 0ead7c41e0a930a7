"""
Central module for the Flask extensions.

Every extension instance used by the project is created here unbound (not yet
attached to an application). Models, services and blueprints can import them
before the application object exists in app.py, which keeps the imports free
of cycles.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from apscheduler.schedulers.background import BackgroundScheduler


# Unbound extension instances
db = SQLAlchemy()
login_manager = LoginManager()
scheduler = BackgroundScheduler()

# Session login settings
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'warning'
