"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from adversim.simulation.models import Weather


class Settings(BaseSettings):
    """Settings loaded from ADVERSIM_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="ADVERSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "adversim"
    log_level: str = "INFO"

    # Simulation
    tick_interval_ms: int = 1000      # simulated (and realtime) tick length
    civilian_count: int = 10
    default_seed: int = 42
    weather: Weather = Weather.CLEAR
    max_ticks: int = 10_000           # safety net for run_to_verdict

    # Exercise
    adversary_start_poi: str = "Parking"
    adversary_end_poi: str = "Meadow"
    adversary_speed: float = 20.0     # informational, shown in snapshots
    civilian_speed: float = 10.0
    baseline_only: bool = True        # start from high-confidence rules only
    max_iterations: int = 1

    # Collaborators (Ollama)
    llm_enabled: bool = True
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "gemma3:4b"
    llm_timeout: float = 30.0
    planner_temperature: float = 0.8
    patch_temperature: float = 0.5
    analysis_temperature: float = 0.4


settings = Settings()
