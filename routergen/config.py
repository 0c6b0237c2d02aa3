"""Generator settings.

Defaults come from the environment so the generator can run from a
project's build scripts without flags:

  ROUTERGEN_OUTPUT_DIR  output package directory (default ./generated)
  ROUTERGEN_API_NAME    class name of the generated REST client
  SWAGGER_URL           document URL; falls back to
                        $API_BASE_URL/swagger/doc.json
  ROUTERGEN_TIMEOUT     document fetch timeout in seconds
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_OUTPUT_DIR = Path("generated")
DEFAULT_API_NAME = "MySuperbApi"
DEFAULT_TIMEOUT = 30.0


def _default_source_url() -> str:
    url = os.environ.get("SWAGGER_URL")
    if url:
        return url
    base = os.environ.get("API_BASE_URL", "")
    return f"{base.rstrip('/')}/swagger/doc.json"


def _env_timeout() -> float:
    raw = os.environ.get("ROUTERGEN_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        timeout = 0.0
    if not timeout > 0:
        raise ValueError(f"ROUTERGEN_TIMEOUT must be a positive number of seconds, got {raw!r}")
    return timeout


@dataclass
class Config:
    output_dir: Path
    source_url: str
    api_name: str = DEFAULT_API_NAME
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> Config:
        """Build a config from environment variables.

        Raises ValueError when ROUTERGEN_TIMEOUT is not a positive number.
        """
        return cls(
            output_dir=Path(os.environ.get("ROUTERGEN_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
            source_url=_default_source_url(),
            api_name=os.environ.get("ROUTERGEN_API_NAME", DEFAULT_API_NAME),
            timeout=_env_timeout(),
        )
