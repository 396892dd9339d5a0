"""Configuration management for the Fluxgate image generation gateway.

All configuration is loaded from environment variables with the ``FLUX_``
prefix, so the gateway can be pointed at a different hosted model or secured
with a new key without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Environment variables (``FLUX_*`` prefix)
2. ``.env`` file in the working directory
3. Default values defined in :class:`GatewayConfig`

Example .env file::

    FLUX_API_KEY=change-me
    FLUX_MODEL_ID=black-forest-labs/FLUX.1-schnell
    FLUX_REQUEST_TIMEOUT=300

Global Configuration Instance
------------------------------
A global ``config`` instance is created at import time.  The bearer token is
therefore read exactly once, when the process starts.  To rotate the key, set
the environment variable and restart.

Usage Example
-------------
::

    from fluxgate.core.config import config

    print(config.model_id)
    print(config.api_name)
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseSettings):
    """Main configuration for the Fluxgate gateway.

    Attributes
    ----------
    Authorization:
        api_key : SecretStr
            Bearer token callers must present.  An empty value rejects every
            request.

    Remote model:
        model_id : str
            Gradio Space (or URL) hosting the text-to-image model.
        api_name : str
            Named endpoint invoked on the Space.
        hf_token : SecretStr | None
            Hugging Face token for gated or private Spaces.
        request_timeout : float
            Upper bound in seconds on waiting for a single prediction.

    Generation defaults:
        default_seed, default_width, default_height,
        default_num_inference_steps
            Values substituted for fields the caller omits.

    Server:
        server_host, server_port, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLUX_",
        case_sensitive=False,
    )

    # Authorization
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token required in the Authorization header",
    )

    # Remote model settings
    model_id: str = Field(
        default="black-forest-labs/FLUX.1-schnell",
        description="Gradio Space hosting the text-to-image model",
    )
    api_name: str = Field(
        default="/infer",
        description="Endpoint name called on the Space",
    )
    hf_token: SecretStr | None = Field(
        default=None,
        description="Hugging Face token for gated or private Spaces",
    )
    request_timeout: float = Field(
        default=300.0,
        description="Seconds to wait for a prediction before giving up",
        gt=0,
    )

    # Generation defaults
    default_seed: int = Field(default=1311721057)
    default_randomize_seed: bool = Field(default=False)
    default_width: int = Field(default=540)
    default_height: int = Field(default=960)
    default_num_inference_steps: int = Field(default=25)

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level used by the CLI entry point",
    )


# Global configuration instance.
config = GatewayConfig()
