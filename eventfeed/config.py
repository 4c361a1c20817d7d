"""
Konfigurasi aplikasi menggunakan Pydantic Settings.
Semua nilai bisa di-override lewat environment variable EVENTFEED_*.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    # Token bearer
    jwt_secret: str = "change_me_in_production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # Data awal
    seed: Optional[int] = None
    seed_event_count: int = 50
    files_dir: str = "./files"

    # Simulasi trafik live (0 = nonaktif)
    simulate_interval_seconds: float = 0
    simulate_batch_size: int = 1
    simulate_max_batch: int = 100

    model_config = SettingsConfigDict(env_prefix="EVENTFEED_", env_file=".env", extra="ignore")


settings = Settings()
