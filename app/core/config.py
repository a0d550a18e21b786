from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 🔐 Security
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALGORITHM: str = "HS256"

    # 🗄️ Storage: "memory" or "postgres"
    STORAGE_BACKEND: str = "memory"
    DATABASE_URL: str | None = None
    # Newest audit entries kept by the memory backend
    MEMORY_AUDIT_LIMIT: int = 10000

    # 📋 Listings
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200

    LOG_LEVEL: str = "INFO"

    # 🚀 Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Sample bases and catalog for local demos only
    SEED_DEMO_DATA: bool = False

    class Config:
        env_file = ".env"
        extra = "forbid"


settings = Settings()
