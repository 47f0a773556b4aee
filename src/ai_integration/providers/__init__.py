"""Provider contract and deterministic in-process providers."""

from ai_integration.providers.base import Provider
from ai_integration.providers.echo import EchoProvider, build_demo_providers

__all__ = [
    "EchoProvider",
    "Provider",
    "build_demo_providers",
]
