"""
Configuration management with Pydantic validation.

Loads settings from YAML config file and environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class AgentConfig(BaseModel):
    """Retry and timeout budget shared by every pipeline stage."""

    retry_attempts: int = Field(default=3, ge=1, le=10, validation_alias="AGENT_RETRY_ATTEMPTS")
    timeout_ms: int = Field(default=5000, ge=1, le=600_000, validation_alias="AGENT_TIMEOUT_MS")
    backoff_base_ms: int = Field(default=1000, ge=0, le=60_000)
    backoff_max_ms: int = Field(default=8000, ge=0, le=120_000)
    metrics_history: int = Field(default=100, ge=10, le=10_000)

    model_config = {
        "populate_by_name": True,
    }


class CircuitBreakerConfig(BaseModel):
    """Workflow-wide circuit breaker configuration."""

    threshold: float = Field(
        default=0.5, gt=0.0, le=1.0, validation_alias="CIRCUIT_BREAKER_THRESHOLD"
    )
    window_ms: int = Field(
        default=600_000, ge=1000, le=86_400_000, validation_alias="CIRCUIT_BREAKER_WINDOW_MS"
    )
    cooldown_ms: int = Field(default=60_000, ge=0, le=3_600_000)
    min_samples: int = Field(default=10, ge=1, le=1000)

    model_config = {
        "populate_by_name": True,
    }


class RiskConfig(BaseModel):
    """Risk scoring parameters."""

    var_confidence: float = Field(default=0.95, ge=0.5, lt=1.0)
    volatility_window_days: int = Field(default=30, ge=2, le=365)
    ewma_lambda: float = Field(default=0.94, gt=0.0, lt=1.0)
    concentration_threshold: float = Field(default=0.4, gt=0.0, le=1.0)
    high_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    medium_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    var_ceiling: float = Field(default=500_000.0, gt=0.0)
    high_var_threshold: float = Field(default=100_000.0, gt=0.0)
    default_volatility: float = Field(default=0.2, ge=0.0, le=1.0)

    @field_validator("medium_threshold")
    @classmethod
    def validate_medium_threshold(cls, v: float, info) -> float:
        high = info.data.get("high_threshold", 0.7)
        if v > high:
            raise ValueError(f"medium_threshold ({v}) cannot exceed high_threshold ({high})")
        return v


class DecisionConfig(BaseModel):
    """Decision engine and workflow branching configuration."""

    narrative_urgency_threshold: int = Field(default=7, ge=1, le=10)
    # Also caps interpret and review calls; clamped to half the stage timeout.
    narrative_timeout_sec: float = Field(default=2.0, gt=0.0, le=120.0)
    alternatives_limit: int = Field(default=5, ge=1, le=50)
    interpret_risk_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    detailed_interpretation: bool = False
    review_enabled: bool = True


class LLMConfig(BaseModel):
    """LLM integration configuration."""

    provider: Literal["openai", "groq", "local"] = "local"
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.3-70b-versatile"
    max_tokens: int = Field(default=500, ge=10, le=4000)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    request_timeout_sec: int = Field(default=20, ge=1, le=120)
    retry_attempts: int = Field(default=2, ge=0, le=5)
    retry_backoff_sec: float = Field(default=1.0, ge=0.0, le=10.0)


class StorageConfig(BaseModel):
    """Storage paths configuration."""

    data_path: str = "./data"
    audit_path: str = "./data/audit"
    logs_path: str = "./logs"


class MonitoringConfig(BaseModel):
    """Monitoring and alerting configuration."""

    metrics_port: int = Field(default=9090, ge=1024, le=65535)
    api_port: int = Field(default=8000, ge=1024, le=65535)
    metrics_enabled: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    error_log_max_bytes: int = Field(default=5_000_000, ge=100_000, le=50_000_000)
    error_log_backup_count: int = Field(default=3, ge=1, le=20)


class Settings(BaseSettings):
    """Main application settings."""

    environment: Literal["development", "production", "test"] = "development"

    # API credentials from environment
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")

    # Sub-configurations
    agent: AgentConfig = Field(default_factory=AgentConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_nested_delimiter": "__",
        "populate_by_name": True,
    }

    @property
    def active_llm_api_key(self) -> str:
        """Return the API key for the configured LLM provider."""
        if self.llm.provider == "groq":
            return self.groq_api_key
        if self.llm.provider == "openai":
            return self.openai_api_key
        return ""

    def validate_for_llm(self) -> list[str]:
        """Return reasons the narrative backend cannot be used (empty when usable)."""
        errors = []
        if self.llm.provider == "local":
            errors.append("LLM provider is local; templated rationale only")
        elif not self.active_llm_api_key:
            key_name = "GROQ_API_KEY" if self.llm.provider == "groq" else "OPENAI_API_KEY"
            errors.append(f"{key_name} not set")
        return errors


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings from YAML config file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file values
    3. Default values
    """
    config_data = {}

    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            config_data = yaml.safe_load(f) or {}

    agent_overrides = {}
    env_retry = os.environ.get("AGENT_RETRY_ATTEMPTS")
    env_timeout = os.environ.get("AGENT_TIMEOUT_MS")
    if env_retry is not None:
        agent_overrides["retry_attempts"] = env_retry
    if env_timeout is not None:
        agent_overrides["timeout_ms"] = env_timeout
    if agent_overrides:
        config_data.setdefault("agent", {}).update(agent_overrides)

    env_path = config_file.parent / ".env"
    settings = Settings(**config_data, _env_file=env_path)

    return settings


def create_default_config(path: str | Path = "config.yaml") -> None:
    """Create a default configuration file."""
    default_config = {
        "environment": "development",
        "agent": {
            "retry_attempts": 3,
            "timeout_ms": 5000,
        },
        "circuit_breaker": {
            "threshold": 0.5,
            "window_ms": 600000,
            "cooldown_ms": 60000,
            "min_samples": 10,
        },
        "risk": {
            "var_confidence": 0.95,
            "volatility_window_days": 30,
            "concentration_threshold": 0.4,
            "high_threshold": 0.7,
            "medium_threshold": 0.4,
            "var_ceiling": 500000.0,
            "high_var_threshold": 100000.0,
        },
        "decision": {
            "narrative_urgency_threshold": 7,
            "narrative_timeout_sec": 2.0,
            "alternatives_limit": 5,
            "interpret_risk_threshold": 0.7,
            "review_enabled": True,
        },
        "llm": {
            "provider": "local",
            "base_url": "https://api.groq.com/openai/v1",
            "model": "llama-3.3-70b-versatile",
            "max_tokens": 500,
            "temperature": 0.3,
            "request_timeout_sec": 20,
            "retry_attempts": 2,
            "retry_backoff_sec": 1.0,
        },
        "storage": {
            "data_path": "./data",
            "audit_path": "./data/audit",
            "logs_path": "./logs",
        },
        "monitoring": {
            "metrics_port": 9090,
            "metrics_enabled": False,
            "log_level": "INFO",
            "error_log_max_bytes": 5000000,
            "error_log_backup_count": 3,
        },
    }

    with open(path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
