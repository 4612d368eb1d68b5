"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.game.config import GameConfig
from shared.game.store import DEFAULT_EVENTS_CHANNEL

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: bool = Field(default=True, description="Require TLS for database connections")
    run_migrations: bool = Field(default=False, description="Apply pending migrations on startup")
    events_channel: str = Field(
        default=DEFAULT_EVENTS_CHANNEL, description="PostgreSQL NOTIFY channel for game events"
    )

    # Server
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend URL for CORS")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Keep-Alive
    enable_keep_alive: bool = Field(default=True, description="Enable heartbeat keep-alive task")
    keep_alive_interval: int = Field(default=300, description="Heartbeat interval in seconds")

    # Game parameters
    game_allowed_entry_amounts: list[int] = Field(default=[5, 10, 15, 20])
    game_max_active_players: int = Field(default=10, ge=1)
    game_max_prize_multiplier: int = Field(default=3, ge=0)
    game_max_pot_percentage: float = Field(default=0.30, gt=0, le=1)
    game_min_prize_amount: int = Field(default=5, ge=0)
    game_house_edge: float = Field(default=0.05, ge=0, lt=1)
    game_use_weighted_selection: bool = Field(default=True)
    game_weight_exponent: float = Field(default=1.2, gt=0)
    game_min_players_to_spin: int = Field(default=2, ge=1)
    game_min_deposit_amount: int = Field(default=1, ge=1)
    game_max_deposit_amount: int = Field(default=10000, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    def game_config(self) -> GameConfig:
        """Build the immutable game configuration from the ``game_*`` fields"""
        return GameConfig(
            allowed_entry_amounts=tuple(self.game_allowed_entry_amounts),
            max_active_players=self.game_max_active_players,
            max_prize_multiplier=self.game_max_prize_multiplier,
            max_pot_percentage=self.game_max_pot_percentage,
            min_prize_amount=self.game_min_prize_amount,
            house_edge=self.game_house_edge,
            use_weighted_selection=self.game_use_weighted_selection,
            weight_exponent=self.game_weight_exponent,
            min_players_to_spin=self.game_min_players_to_spin,
            min_deposit_amount=self.game_min_deposit_amount,
            max_deposit_amount=self.game_max_deposit_amount,
        )

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
