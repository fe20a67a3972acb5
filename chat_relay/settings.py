from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    WS_PATH: str = "/"

    # Liveness sweeper settings
    SWEEP_INTERVAL_SECONDS: float = 5.0

    # Frames waiting for a slow peer before new ones are dropped for it
    OUTBOUND_QUEUE_SIZE: int = 256

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "human"  # human | json
    # Paths to exclude from access logs (e.g., /metrics, /health)
    LOG_EXCLUDED_PATHS: list[str] = ["/metrics", "/health"]

    ENVIRONMENT: str = "development"


app_settings = Settings()
