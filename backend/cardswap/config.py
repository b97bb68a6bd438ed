from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiration: int = 7 * 24 * 3600
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Outgoing mail (SMTP over SSL)
    mail_host: str = "localhost"
    mail_port: int = 465
    mail_username: str = ""
    mail_password: str = ""
    mail_from_address: str = "noreply@cardswap.local"

    # Shipping carrier
    shipping_api_url: str = "https://api.easypost.com/v2"
    shipping_api_key: str = ""
    shipping_timeout: float = 10.0

    starting_cxp_coins: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
