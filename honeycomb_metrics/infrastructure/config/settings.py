"""Application settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # API key of the Honeycomb team; provisioned from the cluster secret
    honeycomb_api_key: str
    honeycomb_api_url: str = "https://api.honeycomb.io"
    honeycomb_request_timeout_seconds: float = 5.0

    # Query results cannot take longer than 10 seconds to compute
    query_poll_interval_seconds: float = 1.0
    query_poll_timeout_seconds: float = 10.0
    query_result_limit: int = 10000
    evaluation_timeout_seconds: float = 10.0

    # Analysis run performed by the runtime entrypoint
    metric_config_path: str | None = None
    analysis_count: int = 1
    analysis_interval_seconds: float = 60.0
    analysis_fail_fast: bool = True

    prometheus_port: int = 9300
    metrics_server_enabled: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        extra="ignore",
    )
