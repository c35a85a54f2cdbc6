from pydantic_settings import BaseSettings



class Settings(BaseSettings):
    PROJECT_NAME: str = "Roomchat"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./roomchat.db"
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    LOG_DIR: str = "logs"

    MESSAGE_PAGE_SIZE: int = 50
    NOTIFICATION_PREVIEW_LENGTH: int = 50
    NOTIFICATION_TYPE: str = "push"
    CONFLICT_MAX_ATTEMPTS: int = 3

    class Config:
        env_file = ".env"


settings = Settings()
