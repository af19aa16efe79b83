"""
Make MCP Server configuration

Values come from environment variables (set in the MCP client config or by the
hosting platform) and are collected into an immutable MakeConfig that is handed
to the API client at startup.
"""
import os
from dataclasses import dataclass

DEFAULT_ZONE = "eu1"
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class MakeConfig:
    """Connection settings for the Make API"""

    api_token: str
    zone: str = DEFAULT_ZONE
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return f"https://{self.zone}.make.com/api/v2"


def load_config() -> MakeConfig:
    """
    Read Make settings from the environment.

    MAKE_API_TOKEN may be empty here; the stdio entry point treats that as
    fatal, the HTTP entry point serves an unauthenticated client.
    """
    return MakeConfig(
        api_token=os.getenv("MAKE_API_TOKEN", ""),
        zone=os.getenv("MAKE_ZONE") or DEFAULT_ZONE,
        timeout=float(os.getenv("MAKE_TIMEOUT", DEFAULT_TIMEOUT)),
    )
