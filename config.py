"""
Configuration for the Results & Ranking service
"""

import os
from urllib.parse import quote_plus
import dotenv
from sqlalchemy.pool import StaticPool
dotenv.load_dotenv()  # Load environment variables from .env file

class Config:
    """Base configuration"""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'supersecretkey'

    # Database settings (DATABASE_URL wins over the individual parts)
    DATABASE_URL = os.environ.get('DATABASE_URL')
    MYSQL_HOST = os.environ.get('DB_HOST', 'localhost')
    MYSQL_PORT = int(os.environ.get('DB_PORT', 3306))
    MYSQL_USERNAME = os.environ.get('DB_USER', 'school')
    # NOTE: do NOT override an explicitly empty password from .env
    MYSQL_PASSWORD = os.environ.get('DB_PASS') if 'DB_PASS' in os.environ else ''
    MYSQL_DATABASE = os.environ.get('DB_NAME', 'school_results')
    MYSQL_CHARSET = 'utf8mb4'

    # SQLAlchemy settings
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 280,
        'pool_pre_ping': True,
        'isolation_level': 'READ COMMITTED',
    }

    # Results & rankings
    DEFAULT_ACADEMIC_YEAR = os.environ.get('DEFAULT_ACADEMIC_YEAR', '2024-2025')
    RESULTS_PAGE_SIZE = int(os.environ.get('RESULTS_PAGE_SIZE', 20))
    RESULTS_MAX_PAGE_SIZE = int(os.environ.get('RESULTS_MAX_PAGE_SIZE', 100))
    RANKINGS_TOP_N = int(os.environ.get('RANKINGS_TOP_N', 20))

    # Bearer tokens
    AUTH_TOKEN_MAX_AGE = int(os.environ.get('AUTH_TOKEN_MAX_AGE', 7 * 24 * 3600))

    # Create missing tables and the default principal when the app starts
    INIT_DB_ON_STARTUP = os.environ.get('INIT_DB_ON_STARTUP', '1').lower() in ('1', 'true', 'yes')

    def _encoded_password(self) -> str:
        """Percent-encode special characters for URL usage."""
        return quote_plus(self.MYSQL_PASSWORD) if self.MYSQL_PASSWORD else ''

    def get_database_uri(self) -> str:
        """Get the database URI."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = self.MYSQL_USERNAME
        pwd = self._encoded_password()
        host = self.MYSQL_HOST
        port = self.MYSQL_PORT
        database = self.MYSQL_DATABASE

        if pwd:
            return f"mysql+pymysql://{user}:{pwd}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"
        return f"mysql+pymysql://{user}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    INIT_DB_ON_STARTUP = False
    SECRET_KEY = 'testing-secret-key'
    DEFAULT_ACADEMIC_YEAR = '2024-2025'
    RESULTS_PAGE_SIZE = 20
    RESULTS_MAX_PAGE_SIZE = 100
    RANKINGS_TOP_N = 20
    # One in-memory SQLite database shared by every session
    SQLALCHEMY_ENGINE_OPTIONS = {
        'poolclass': StaticPool,
        'connect_args': {'check_same_thread': False},
    }

    def get_database_uri(self) -> str:
        return 'sqlite:///:memory:'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
