from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

CART_STORAGE_KEY = "coffee_world_cart"
THEME_STORAGE_KEY = "admin-theme"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "coffee_world"

    # Session tokens are issued by the external auth provider
    SECRET_KEY: str = "supersecretkey-change-me"
    JWT_ALGORITHM: str = "HS256"
    ADMIN_ROLES: List[str] = ["admin", "authenticated"]

    LOW_STOCK_THRESHOLD: int = 10
    TOP_PRODUCTS_LIMIT: int = 5
    DEFAULT_ORIGIN: str = "Kenya"

    CART_STORAGE_PATH: str = "~/.coffee_world/storage.json"

    CURRENCY_LABEL: str = "KSh"
    COMPANY_NAME: str = "Coffee World Investments"

    LOG_LEVEL: str = "INFO"


settings = Settings()
