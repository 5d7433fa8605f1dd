"""
Chatflow - Configuration Settings
Compiler defaults (flow config), passthrough node types, logging and environment.
"""

import logging
from typing import List, Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Chatflow compiler settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Runtime ───────────────────────────────────────────────────────
    environment: str = Field(default="dev", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ── Executable Flow Defaults ──────────────────────────────────────
    flow_timeout_seconds: int = Field(default=3600, alias="FLOW_TIMEOUT_SECONDS")
    flow_max_iterations: int = Field(default=100, alias="FLOW_MAX_ITERATIONS")
    flow_error_behavior: Literal["fail", "continue", "fallback"] = Field(
        default="fail", alias="FLOW_ERROR_BEHAVIOR",
    )

    # ── Compiler Behaviour ────────────────────────────────────────────
    # Extra UI node types accepted by pre-compile validation and compiled
    # with the default (passthrough) strategy.
    passthrough_node_types: List[str] = Field(default_factory=list, alias="PASSTHROUGH_NODE_TYPES")
    warn_unreachable_nodes: bool = Field(default=True, alias="WARN_UNREACHABLE_NODES")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["dev", "development", "qa", "uat", "prod"]
        if v.lower() not in allowed:
            logger.warning("Environment '%s' not in %s", v, allowed)
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return level


settings = Settings()
