from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str = "sqlite:///./shiftwatch.db"

    # Single guild deployment
    GUILD_ID: str = ""

    # Defaults for the runtime settings table
    DEFAULT_TZ: str = "Europe/Zagreb"
    FINE_AMOUNT: float = 20.0
    FINE_CURRENCY: str = "€"

    # Outbound delivery (bot service)
    BOT_SERVICE_URL: str = ""
    BOT_SERVICE_SECRET: str = ""

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_INTERVAL_SECONDS: int = 30
    SCHEDULER_LOOKBACK_HOURS: int = 2
    SCHEDULER_LOOKAHEAD_HOURS: int = 24

    # Early clock-out confirmation window
    CONFIRM_TIMEOUT_SECONDS: float = 30.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
