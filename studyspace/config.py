from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./studyspace.db"
    DB_ECHO: bool = False
    
    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    
    # Application
    PROJECT_NAME: str = "StudySpace Booking Platform"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"]
    PUBLIC_DOMAIN: str = "http://localhost:8080"
    
    # SMS gateway
    SMS_GATEWAY_URL: str = "https://sms.example.com/api/send"
    SMS_USERNAME: str = ""
    SMS_PASSWORD: str = ""
    SMS_SENDER_ID: str = "STDYSP"
    SMS_TIMEOUT_SECONDS: float = 10.0
    
    # Real-time change feed
    REALTIME_POLL_SECONDS: float = 1.0
    REALTIME_BUFFER_SIZE: int = 1000
    
    @property
    def database_url(self) -> str:
        # Heroku-style URLs
        if self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql://", 1)
        return self.DATABASE_URL
    
    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
