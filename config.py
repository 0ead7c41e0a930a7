import os
from decimal import Decimal
from dotenv import load_dotenv

# Load variables from the .env file
basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    """Base settings shared by every environment"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-fallback-key'

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'earnhub.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar boundaries (daily prize reset, weekend withdrawals, midnight jobs)
    APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'UTC')

    # Business defaults
    REFERRAL_BONUS_DEFAULT = Decimal(os.environ.get('REFERRAL_BONUS_DEFAULT') or '200')
    DEFAULT_VALIDITY_DAYS = int(os.environ.get('DEFAULT_VALIDITY_DAYS') or 45)
    PRIZE_REFERRAL_THRESHOLD = int(os.environ.get('PRIZE_REFERRAL_THRESHOLD') or 3)
    WITHDRAW_VAT_RATE = Decimal(os.environ.get('WITHDRAW_VAT_RATE') or '0.10')
    WITHDRAW_WEEKDAYS = (5, 6)  # Saturday, Sunday
    DEFAULT_SUPPORT_NUMBER = '+601121222669'

    # Background jobs
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED') == 'True'

class DevelopmentConfig(Config):
    """Development settings"""
    DEBUG = True

class ProductionConfig(Config):
    """Production settings"""
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True

class TestingConfig(Config):
    """Settings for the test suite"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    APP_TIMEZONE = 'UTC'
    SCHEDULER_ENABLED = False

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
