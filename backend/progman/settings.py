from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    app_name: str = "Progress Manager"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/progman.db"

    # Front-end origins allowed to call the API
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Comment sections
    overall_key: str = "__OVERALL__"
    overall_label: str = "Overall report"
    sections_left: list[str] = ["Design", "Mechanical", "Hardware", "Gauge", "PM"]
    sections_right: list[str] = ["Planning", "Graphics", "Payout", "Sub", "Main"]

    # Schedule
    milestone_category: str = "Milestone"
    uncategorized_label: str = "uncategorized"
    shift_actual_dates: bool = False
    seed_new_projects: bool = True

    # Client timings (seconds)
    autosave_delay_seconds: float = 1.0
    resync_delay_seconds: float = 0.5

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PROGMAN_", extra="ignore")

settings = Settings()
