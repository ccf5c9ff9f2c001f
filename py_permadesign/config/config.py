from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

import os

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")
    allowed_origins: str = Field(default="*", description="CORS allowed origins, comma separated")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (console or json)")

    # Design Session Defaults
    default_anchor_lat: float = Field(default=10.8505, description="Initial anchor latitude")
    default_anchor_lng: float = Field(default=76.2711, description="Initial anchor longitude")
    default_radius_deg: float = Field(default=0.05, description="Sampling radius around the anchor when no boundary is set")
    default_wind_direction: float = Field(default=225.0, description="Prevailing wind direction in degrees")
    random_seed: Optional[str] = Field(default=None, description="Seed for terrain jitter and sampling")

    # Climate Collaborator
    climate_enabled: bool = Field(default=True, description="Query the remote climate service")
    climate_api_url: str = Field(
        default="https://power.larc.nasa.gov/api/temporal/climatology/point",
        description="NASA POWER climatology endpoint",
    )
    climate_timeout_seconds: float = Field(default=10.0, description="Climate request timeout")

    # Placement Synthesis
    synthesis_delay_seconds: float = Field(default=0.0, description="Simulated latency for a synthesis job")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate singleton settings object
settings = Settings()
