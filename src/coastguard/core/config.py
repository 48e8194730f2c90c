"""Application configuration loaded from environment variables.

Every group is frozen: a configuration object is built once and injected
into the components that need it, so tests can vary weights and thresholds
by constructing their own instances.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ScoringConfig(BaseSettings):
    """Weights and thresholds for the risk and vulnerability formulas."""

    model_config = {"env_prefix": "COASTGUARD_SCORING_", "frozen": True}

    rain_weight: float = 0.35
    tide_weight: float = 0.30
    vuln_weight: float = 0.25
    exposure_weight: float = 0.10

    green_upper: int = 40
    yellow_upper: int = 70
    driver_threshold: float = 60.0

    elev_weight: float = 0.3
    dist_weight: float = 0.3
    land_cover_weight: float = 0.2
    mang_weight: float = 0.2
    default_vuln_score: int = 50


class PipelineConfig(BaseSettings):
    """Stage orchestrator configuration."""

    model_config = {"env_prefix": "COASTGUARD_PIPELINE_", "frozen": True}

    loss_threshold_pct: float = 25.0
    carbon_per_hectare: float = 10.0
    default_time_window_hrs: int = 12
    default_audience: list[str] = Field(default_factory=lambda: ["people", "officials"])
    uploads_dir: str = "uploads"
    min_successful_stages: int = 2
    vision_timeout_seconds: float = 60.0


class LLMConfig(BaseSettings):
    """LLM provider configuration, shared by message enhancement and vision."""

    model_config = {"env_prefix": "COASTGUARD_LLM_", "frozen": True}

    enabled: bool = True
    provider: str = "openai"
    base_url: str = "https://api.openai.com"
    model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    api_key: str | None = None
    timeout_seconds: float = 30.0
    max_retries: int = 1
    max_tokens: int = 300
    top_p: float | None = None


class AlertConfig(BaseSettings):
    """Alert dispatch throttling, caps and fan-out settings."""

    model_config = {"env_prefix": "COASTGUARD_ALERTS_", "frozen": True}

    cooldown_hours: float = 6.0
    max_alerts_per_day: int = 5
    recent_window_minutes: int = 60
    simulation: bool = False
    max_workers: int = 4
    email_timeout_seconds: float = 15.0
    day_boundary_tz: str = "UTC"


class I18nConfig(BaseSettings):
    """Localization configuration."""

    model_config = {"env_prefix": "COASTGUARD_I18N_", "frozen": True}

    bundles_dir: str | None = None
    default_locale: str = "en"


class NotificationConfig(BaseSettings):
    """Escalation email configuration."""

    model_config = {"env_prefix": "COASTGUARD_NOTIFICATION_", "frozen": True}

    templates_path: str | None = None
    sender: str = "Coastal Guard AI <alerts@coastguard.local>"


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "COASTGUARD_", "frozen": True}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
