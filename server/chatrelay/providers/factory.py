from __future__ import annotations
import logging

import boto3

from chatrelay.config import Settings
from chatrelay.providers.anthropic import AnthropicProvider
from chatrelay.providers.base import StreamingProvider
from chatrelay.providers.bedrock import BedrockProvider
from chatrelay.providers.mock import MockProvider

logger = logging.getLogger(__name__)


def aws_credentials_available(settings: Settings) -> bool:
    session = boto3.Session(region_name=settings.aws_region)
    return session.get_credentials() is not None


def resolve_provider_id(settings: Settings) -> str:
    if settings.provider != "auto":
        return settings.provider
    # An explicit API key wins, then the AWS credential chain; with neither, echo locally
    if settings.anthropic_api_key:
        return "anthropic"
    if aws_credentials_available(settings):
        return "bedrock"
    logger.warning("No Anthropic key or AWS credentials found; falling back to the mock provider")
    return "mock"


def build_provider(settings: Settings) -> StreamingProvider:
    """Construct the one provider client this process owns."""
    pid = resolve_provider_id(settings)
    if pid == "anthropic":
        if not settings.anthropic_api_key:
            raise ValueError("provider=anthropic requires CHATRELAY_ANTHROPIC_API_KEY")
        provider: StreamingProvider = AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            api_version=settings.anthropic_api_version,
        )
    elif pid == "mock":
        provider = MockProvider()
    else:
        provider = BedrockProvider(region=settings.aws_region, read_timeout=settings.aws_read_timeout)
    logger.info("Using provider=%s", provider.id)
    return provider
