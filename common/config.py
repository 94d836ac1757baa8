from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings."""

    # Recents cache
    recents_max_entries: int = 10  # capacity of both the recent-users and compared-users lists
    recents_storage_backend: str = "memory"  # memory | file
    recents_storage_dir: str = "data/sessions"  # root for file-backed session storage
    recents_storage_quota_bytes: int = 5242880  # 5MB, like a browser's sessionStorage; 0 = unlimited
    recents_max_sessions: int = 1000  # live sessions kept in the registry
    recents_session_ttl_hours: float = 24  # file backend: session dirs idle this long are swept at startup; 0 = never

    # Session
    session_cookie_name: str = "recents_session"

    # App Config
    debug: bool = False
    cors_origins: str = "http://localhost:3000"

    # Logging Config
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: str = "logs/recents.log"  # Log file path
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5  # Keep 5 backup files
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    enable_file_logging: bool = False  # Enable logging to file
    enable_json_logging: bool = False  # Enable structured JSON logging

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
