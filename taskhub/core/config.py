import os
from decimal import Decimal

class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "TaskHub")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./taskhub.db")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change_this_secret_key_in_prod")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))  # 7 days

    # Redis backs the write-endpoint rate limiter
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "1") == "1"

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Marketplace rules
    REFERRAL_BONUS_RATE: Decimal = Decimal(os.getenv("REFERRAL_BONUS_RATE", "0.05"))
    MIN_TASK_PRICE: Decimal = Decimal(os.getenv("MIN_TASK_PRICE", "100"))
    MAX_TASK_SLOTS: int = int(os.getenv("MAX_TASK_SLOTS", 100))
    MIN_DEPOSIT: Decimal = Decimal(os.getenv("MIN_DEPOSIT", "100"))
    MIN_WITHDRAWAL: Decimal = Decimal(os.getenv("MIN_WITHDRAWAL", "100"))

    # Bootstrap administrator, created by initial_data.py
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@taskhub.local")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "admin123")

settings = Settings()
