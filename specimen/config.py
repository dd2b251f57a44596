import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Service configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///specimen.db')
    
    # Service settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    API_HOST = os.getenv('API_HOST', '127.0.0.1')
    API_PORT = int(os.getenv('API_PORT', 8000))
    LOG_DIR = os.getenv('LOG_DIR', 'logs')  # empty = console only
    LOG_LEVEL = os.getenv('LOG_LEVEL', '').upper()  # overrides the DEBUG-derived level
    
    # Rating cache settings
    RATING_CACHE_BACKEND = os.getenv('RATING_CACHE_BACKEND', 'memory').lower()  # "memory" or "redis"
    RATING_CACHE_TTL = int(os.getenv('RATING_CACHE_TTL', 60))
    RATING_CACHE_MAX_SIZE = int(os.getenv('RATING_CACHE_MAX_SIZE', 1000))
    REDIS_URL = os.getenv('REDIS_URL', '')
    
    # Population settings
    POPULATION_FETCH_TIMEOUT = float(os.getenv('POPULATION_FETCH_TIMEOUT', 10))
    POPULATION_ROLLING_DAYS = int(os.getenv('POPULATION_ROLLING_DAYS', 0))  # 0 = no window
    
    # Leaderboard settings
    LEADERBOARD_DEFAULT_LIMIT = int(os.getenv('LEADERBOARD_DEFAULT_LIMIT', 50))
    
    @classmethod
    def get_rolling_days(cls):
        """Get the population rolling window in days, or None when unbounded"""
        if cls.POPULATION_ROLLING_DAYS > 0:
            return cls.POPULATION_ROLLING_DAYS
        return None
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are consistent"""
        if cls.RATING_CACHE_BACKEND not in ('memory', 'redis'):
            raise ValueError("RATING_CACHE_BACKEND must be 'memory' or 'redis'")
        if cls.RATING_CACHE_TTL <= 0:
            raise ValueError("RATING_CACHE_TTL must be a positive number of seconds")
        if cls.RATING_CACHE_MAX_SIZE <= 0:
            raise ValueError("RATING_CACHE_MAX_SIZE must be positive")
        if cls.POPULATION_FETCH_TIMEOUT <= 0:
            raise ValueError("POPULATION_FETCH_TIMEOUT must be positive")
        if cls.POPULATION_ROLLING_DAYS < 0:
            raise ValueError("POPULATION_ROLLING_DAYS cannot be negative")
        if cls.LEADERBOARD_DEFAULT_LIMIT < 1:
            raise ValueError("LEADERBOARD_DEFAULT_LIMIT must be at least 1")
