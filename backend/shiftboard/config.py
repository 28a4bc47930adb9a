"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "ShiftBoard"
    debug: bool = False
    api_prefix: str = "/api"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Public URLs used in links we hand out
    site_url: str = "http://localhost:3000"
    portal_url: str = "http://localhost:3000/portal"

    # Database (empty disables the store; endpoints degrade instead of crashing)
    database_url: str = ""
    database_echo: bool = False

    # Auth
    secret_key: str = "CHANGE-ME-in-production-use-openssl-rand-hex-32"
    session_ttl_days: int = 7
    config_token_ttl_hours: int = 24
    bcrypt_rounds: int = 12
    login_max_failures: int = 5
    login_lockout_minutes: int = 15
    fallback_users_file: str = "samples/fallback_users.yaml"

    # Lead classification
    anthropic_api_key: str = ""
    classifier_model: str = "claude-sonnet-4-20250514"
    classifier_max_tokens: int = 1024
    classifier_timeout: float = 30.0

    # Intake
    intake_default_expiry_days: int = 7

    # Outbound HTTP (webhooks)
    http_timeout: float = 10.0
    automation_webhook_url: str = ""
    intake_webhook_url: str = ""

    # Inbound automation webhook (empty disables the secret check)
    automation_webhook_secret: str = ""

    # SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout: float = 15.0
    email_from: str = "no-reply@example.com"
    admin_email: str = "admin@example.com"

    model_config = {"env_file": ".env", "env_prefix": "SHIFTBOARD_"}


settings = Settings()
