from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CAMPUS_EVENTS_", env_file=".env", extra="ignore"
    )

    app_name: str = "Campus Events Service"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    base_points_per_level: int = 100
    level_scaling_factor: float = 1.5
    level_progress_cap: int = 99

    leaderboard_default_limit: int = 10
    history_default_limit: int = 20


settings = Settings()
