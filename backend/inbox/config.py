from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application configuration using environment variables."""
    
    # Application
    APP_NAME: str = "Inbox Service"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    
    # Security (tokens are issued by the auth service, we only verify them)
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours
    
    # Database
    DATABASE_URL: str = "sqlite:///./inbox.db"
    
    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "http://localhost:5173"]
    
    # Pagination
    DEFAULT_CONVERSATION_PAGE_SIZE: int = 20
    DEFAULT_MESSAGE_PAGE_SIZE: int = 50
    DEFAULT_PARTICIPANT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100
    
    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
