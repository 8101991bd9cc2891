from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GYMSCHEDULE_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./gymschedule.db"

    # Registrations
    staff_can_backdate_registrations: bool = True
    auto_approve_staff_bookings: bool = True


def get_settings() -> Settings:
    return Settings()
