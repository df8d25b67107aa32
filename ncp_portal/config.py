from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./ncp_portal.db"
    database_echo: bool = False

    # Tokens are issued by the identity provider; the portal only verifies them.
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 8

    log_level: str = "INFO"

    # CORS: comma separated list in CORS_ORIGINS. Empty means allow all (development).
    cors_origins: str = ""

    # sorted + released + rejected must equal the held quantity at QA approval
    enforce_quantity_balance: bool = True
    ncp_code_max_attempts: int = 5
    notification_list_limit: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
