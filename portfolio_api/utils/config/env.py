from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "portfolio-builder"
    environment: str = "local"
    debug: bool = True

    mongo_port: int = 27017
    mongo_host: str = "localhost"
    mongo_db: str = "portfolio_builder"
    mongo_password: str | None = None
    mongo_params: str | None = None
    mongo_user: str | None = None

    jwt_algorithm: str = "HS256"
    access_token_secret: str = "very-secret-access-key"
    access_token_expires_minutes: int = 15
    refresh_token_secret: str = "very-secret-refresh-key"
    refresh_token_expires_days: int = 10

    redis_db: int = 0
    redis_port: int = 6379
    redis_host: str = "localhost"
    redis_password: str | None = None

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_sender: str = "no-reply@portfolio-builder.local"
    smtp_use_tls: bool = True

    # Base URL used when building verification and reset links
    frontend_url: str = "http://localhost:5173"
    cookie_secure: bool = True
    block_sweep_cron: str = "0 0 * * *"

    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=True)

    @property
    def mongo_uri(self) -> str:
        auth = ""
        if self.mongo_user and self.mongo_password:
            auth = f"{self.mongo_user}:{self.mongo_password}@"
        params = f"?{self.mongo_params}" if self.mongo_params else "?retryWrites=true&w=majority"
        return f"mongodb+srv://{auth}{self.mongo_host}/{self.mongo_db}{params}"


settings = Settings()
