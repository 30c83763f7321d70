from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App Basics
    app_env: str = "dev"
    app_name: str = "MDA Vendas Billing"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"

    # Database
    database_url: str = "sqlite:///./dev.db"
    db_echo: bool = False

    # JWT
    jwt_secret: str = "secret_key"
    jwt_alg: str = "HS256"
    jwt_access_ttl_min: int = 60 * 24

    # Mercado Pago
    mp_access_token: str = ""
    mp_webhook_url: str = ""
    mp_webhook_secret: str = ""
    mp_currency: str = "BRL"
    mp_statement_descriptor: str = "MDA Vendas"
    app_base_url: str = "http://localhost:8000"

    # PIX artifact display window
    pix_expiration_minutes: int = 30

    # Entitlement activation
    activation_max_attempts: int = 3

    # Bootstrap owner account
    owner_email: str = "owner@example.com"
    owner_password: str = ""

    # Tell pydantic to read from .env file
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
    )

settings = Settings()
