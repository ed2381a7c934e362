from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    server_port: int = 3000
    # Browser frontends are served from anywhere
    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"

    # Which provider client the process owns: bedrock, anthropic, mock or auto
    provider: Literal["auto", "bedrock", "anthropic", "mock"] = "auto"

    # AWS Bedrock; credentials come from the default boto3 chain
    aws_region: str = "us-west-2"
    # Socket read timeout while waiting for the next stream frame
    aws_read_timeout: int = 3600
    model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"

    # Fixed generation parameters sent with every request
    max_tokens: int = 2048
    temperature: float = 0.9
    anthropic_version: str = "bedrock-2023-05-31"

    # Direct Anthropic API
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-3-haiku-20240307"
    anthropic_api_version: str = "2023-06-01"

    # strict: errors go out of band (status code, SSE error frame, aborted body)
    # legacy: the literal text ERROR is written into the body
    error_mode: Literal["strict", "legacy"] = "strict"

    static_dir: str = "./static"

    model_config = SettingsConfigDict(
        env_prefix="CHATRELAY_",
        case_sensitive=False,
        env_file=("../.env", ".env"),
        extra="ignore",
        protected_namespaces=(),
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
