import os
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _database_url():
    url = os.getenv('DATABASE_URL')
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url or 'sqlite:///lexledger.db'


def _engine_options(url):
    if url.startswith('sqlite'):
        return {}
    options = {
        'pool_pre_ping': True,
        'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', 10)),
    }
    statement_timeout = os.getenv('DB_STATEMENT_TIMEOUT_MS')
    if statement_timeout:
        options['connect_args'] = {'options': f'-c statement_timeout={int(statement_timeout)}'}
    return options


class Config:
    """Default configuration, read from the environment."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PERMANENT_SESSION_LIFETIME = timedelta(hours=1)  # Session expires after 1 hour
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Candidates shorter than this are ignored by the conflict matcher
    CONFLICT_MIN_TERM_LENGTH = int(os.getenv('CONFLICT_MIN_TERM_LENGTH', 2))

    # Portal lockout policy
    PORTAL_MAX_FAILED_LOGINS = int(os.getenv('PORTAL_MAX_FAILED_LOGINS', 5))
    PORTAL_LOCKOUT_MINUTES = int(os.getenv('PORTAL_LOCKOUT_MINUTES', 30))


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = 'WARNING'
