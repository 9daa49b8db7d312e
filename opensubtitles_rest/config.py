import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

TRUTHY = ['true', '1', 't', 'y', 'yes']


class Config:
    """Base configuration."""
    DEBUG = os.environ.get('DEBUG', 'false').lower() in TRUTHY
    TESTING = False

    OPENSUBTITLES_API_KEY = os.environ.get('OPENSUBTITLES_API_KEY')
    OPENSUBTITLES_BASE_URL = os.environ.get('OPENSUBTITLES_BASE_URL', 'https://api.opensubtitles.com/api/v1')
    # OpenSubtitles rejects requests without an application User-Agent
    OPENSUBTITLES_USER_AGENT = os.environ.get('OPENSUBTITLES_USER_AGENT', 'OpenSubtitlesRest v1.0.0')
    OPENSUBTITLES_TIMEOUT = float(os.environ.get('OPENSUBTITLES_TIMEOUT') or '15')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    pass


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    OPENSUBTITLES_API_KEY = 'test-api-key'
    OPENSUBTITLES_BASE_URL = 'https://api.opensubtitles.test/api/v1'


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}


def get_config():
    env = os.getenv('OPENSUBTITLES_ENV', 'production')
    return config_by_name.get(env, ProductionConfig)
