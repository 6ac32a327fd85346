# academy/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str
    jwt_secret_key: str
    jwt_algorithm: str = 'HS256'

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    # Calendar day used for attendance rows and the absence sweep
    academy_timezone: str = 'UTC'
    password_hash_rounds: int = 12
    max_reassignment_requests: int = 3
    # Unset means expiry must be requested with an explicit threshold
    registration_expiry_days: Optional[int] = None

    # PostgreSQL only
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_lock_timeout: str = '30s'
    db_statement_timeout: str = '60s'

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
