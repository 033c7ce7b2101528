"""
Halo Configuration Module

Loads environment variables for backend configuration.
"""
from pydantic_settings import BaseSettings
from typing import List, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Simulation Notes:
    - Payment rails, card tokenization and biometrics are mocked
    - Demo mode exposes generated OTPs and always approves authorizations
    """

    # Demo Configuration
    demo_mode: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Step-up verification
    step_up_threshold: float = 100.0  # Major currency units
    otp_length: int = 6
    verification_session_ttl_minutes: int = 15

    # Risk scoring
    risk_challenge_score: int = 30
    risk_block_score: int = 60
    risk_velocity_window_minutes: int = 10
    risk_velocity_max_clients: int = 10000
    risk_suspicious_providers: List[str] = ["unknown", "unsupported"]

    # Payment methods
    payment_method_otp_ttl_minutes: int = 10
    auto_verify_test_cards: bool = True
    expiry_sweep_interval_minutes: int = 60

    # Protocol defaults
    default_country: str = "US"
    default_payment_provider: str = "stripe"

    # Database
    database_path: str = "./halo.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
