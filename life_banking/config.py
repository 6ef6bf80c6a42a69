"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class EconomyConfig(BaseSettings):
    """Banking engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LIFEBANK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Central bank configuration
    base_rate: Decimal = Decimal("0.03")
    min_base_rate: Decimal = Decimal("0.001")  # 0.1%
    max_base_rate: Decimal = Decimal("0.20")   # 20%
    inflation_target: Decimal = Decimal("0.02")
    inflation_rate: Decimal = Decimal("0.02")  # Baseline inflation before regime effects
    rate_history_window: int = 30
    projection_rate_noise: Decimal = Decimal("0.003")
    projection_inflation_noise: Decimal = Decimal("0.005")

    # Loan pricing
    loan_rate_floor: Decimal = Decimal("0.01")  # Minimum lender profitability

    # Banking regulations
    minimum_reserve_ratio: Decimal = Decimal("0.1")
    deposit_insurance_limit: Decimal = Decimal("250000")
    max_loan_to_value_ratio: Decimal = Decimal("0.8")

    # Market cycle configuration
    decade_recession_probability: float = 0.3
    midcycle_boom_probability: float = 0.4
    inflation_spike_threshold: Decimal = Decimal("0.02")  # Above target
    realized_inflation_noise: Decimal = Decimal("0.005")

    # Borrower configuration
    starting_credit_score: int = 650
    annual_income: Decimal = Decimal("50000")

    # Simulation
    random_seed: Optional[int] = None

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Persistence / API configuration
    database_path: str = "life_banking.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8090


# Global configuration instance
config = EconomyConfig()


def get_config() -> EconomyConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EconomyConfig:
    """Reload configuration from environment"""
    global config
    config = EconomyConfig()
    return config
