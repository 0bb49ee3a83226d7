# tasktrack/config/settings.py
# Application configuration: database, auth, uploads and storage

import os
from typing import List, Set

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Settings for the task tracker, read from the environment"""

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tasktrack.db")
    DB_SSLMODE = os.getenv("DB_SSLMODE", "require")

    # Authentication / session settings
    AUTH = {
        'secret_key': os.getenv('SECRET_KEY', 'dev-secret-change-me'),
        'algorithm': os.getenv('ALGORITHM', 'HS256'),
        'access_token_expire_minutes': int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', 60 * 24)),
        'profile_lookup_timeout': float(os.getenv('PROFILE_LOOKUP_TIMEOUT', 10.0)),  # seconds
    }

    # Artifact upload settings
    FILE_UPLOAD = {
        'max_file_size': int(os.getenv('MAX_FILE_SIZE', 25 * 1024 * 1024)),  # 25MB
        'allowed_content_types': {
            'application/zip',
            'application/x-zip-compressed',
            'application/x-zip',
            'multipart/x-zip',
            'application/octet-stream',  # browsers that don't sniff archives
        },
        'allowed_extensions': {'.zip'},
    }

    # Blob storage
    STORAGE = {
        'upload_dir': os.getenv('UPLOAD_DIR', 'uploads'),
        'bucket': os.getenv('STORAGE_BUCKET', 'task-files'),
    }

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
        if origin.strip()
    ]

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    SERVER = {
        'host': os.getenv('HOST', '0.0.0.0'),
        'port': int(os.getenv('PORT', '8000')),
        'reload': _env_bool('RELOAD', 'true'),
    }

    @classmethod
    def allowed_extensions(cls) -> Set[str]:
        return set(cls.FILE_UPLOAD['allowed_extensions'])

    @classmethod
    def uses_default_secret(cls) -> bool:
        return cls.AUTH['secret_key'] == 'dev-secret-change-me'


settings = Settings()
