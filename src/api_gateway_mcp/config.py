"""Gateway settings and per-API configuration records."""

import json
import os
import re
from typing import List, Mapping, Optional

import structlog
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.schemas import ApiConfig

logger = structlog.get_logger(__name__)

_HEADER_VAR = re.compile(r"^API_(\d+)_HEADER_(.+)$")


class GatewaySettings(BaseSettings):
    """Process-wide settings, read from the environment (and ``.env``)."""

    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=3000, description="HTTP port")
    cors_origin: str = Field(
        default="*", description="Allowed CORS origins, comma separated"
    )
    rate_limit_window_ms: int = Field(
        default=15 * 60 * 1000, description="Rate limit window in milliseconds"
    )
    rate_limit_max_requests: int = Field(
        default=100, description="Requests allowed per client per window"
    )
    request_timeout: float = Field(
        default=30.0, description="Upstream request timeout in seconds"
    )
    spec_timeout: float = Field(
        default=15.0, description="Timeout for fetching API descriptions"
    )
    log_level: str = Field(default="INFO", description="Log level")
    glide_app_id: Optional[str] = Field(
        default=None, description="Glide app id used by the convenience routes"
    )
    glide_api_name: str = Field(
        default="glide-api-v1", description="API name used by the Glide routes"
    )

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]


def load_api_configs(environ: Optional[Mapping[str, str]] = None) -> List[ApiConfig]:
    """Collect ``API_<n>_*`` variables into ordered :class:`ApiConfig` records.

    Scanning starts at ``API_1_NAME`` and stops at the first missing index.
    Headers may come from a JSON object in ``API_<n>_HEADERS`` and from
    individual ``API_<n>_HEADER_<NAME>`` variables (``_`` in the name becomes
    ``-``); the individual variables win on conflict.
    """
    env = os.environ if environ is None else environ
    configs: List[ApiConfig] = []

    index = 1
    while env.get(f"API_{index}_NAME"):
        prefix = f"API_{index}_"
        name = env[f"{prefix}NAME"]
        spec_location = env.get(f"{prefix}SWAGGER_URL") or env.get(
            f"{prefix}SWAGGER_FILE"
        )

        headers: dict = {}
        raw_headers = env.get(f"{prefix}HEADERS")
        if raw_headers:
            try:
                parsed = json.loads(raw_headers)
                if isinstance(parsed, dict):
                    headers.update(parsed)
                else:
                    logger.error("Headers must be a JSON object", api_index=index)
            except json.JSONDecodeError as e:
                logger.error("Failed to parse headers", api_index=index, error=str(e))

        for key in sorted(env):
            match = _HEADER_VAR.match(key)
            if match and int(match.group(1)) == index:
                headers[match.group(2).replace("_", "-")] = env[key]

        if not spec_location:
            logger.error(
                "No SWAGGER_URL or SWAGGER_FILE configured, skipping API",
                api_index=index,
                api=name,
            )
            index += 1
            continue

        try:
            configs.append(
                ApiConfig(
                    name=name,
                    spec_location=spec_location,
                    base_url=env.get(f"{prefix}BASE_URL") or None,
                    headers=headers,
                )
            )
        except ValidationError as e:
            logger.error("Invalid API configuration", api_index=index, error=str(e))
        index += 1

    return configs
