from __future__ import annotations

"""
Explicit configuration for the generation engine.

Nothing in the pipeline reads the process environment directly. The CLI
builds a Settings instance with Settings.from_env() and passes it down.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_FIREFLY_BASE_URL = "https://firefly-api.adobe.io"
DEFAULT_IMS_TOKEN_URL = "https://ims-na1.adobelogin.com/ims/token/v3"
DEFAULT_FIREFLY_SCOPES = "openid,AdobeID,session,additional_info,read_organizations,firefly_api,ff_apis"
DEFAULT_SCENE_MODEL = "gemini-2.5-flash"


@dataclass(frozen=True)
class Settings:
    """Endpoints, credentials and timing used by the generation engine."""

    firefly_client_id: str
    firefly_client_secret: str
    firefly_base_url: str
    ims_token_url: str
    firefly_scopes: str

    # Only needed when scene planning is enabled.
    gemini_api_key: Optional[str] = None
    scene_model: str = DEFAULT_SCENE_MODEL

    # Sent as x-model-version on text-to-image jobs, e.g. "image4_standard".
    image_model_version: Optional[str] = None

    poll_interval: float = 1.0
    pacing_delay: float = 1.0

    # Upper bound in seconds on polling a single job; None waits until the
    # service reports a terminal status.
    max_wait: Optional[float] = None
    request_timeout: float = 60.0

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks.
        return (
            f"Settings(firefly_client_id={self.firefly_client_id!r}, "
            f"firefly_base_url={self.firefly_base_url!r}, "
            f"scene_model={self.scene_model!r}, "
            f"image_model_version={self.image_model_version!r})"
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """
        Build settings from environment variables.

        Required: FFS_CLIENT_ID, FFS_CLIENT_SECRET. Optional: FFS_SCOPES,
        FIREFLY_BASE_URL, IMS_TOKEN_URL, GEMINI_API_KEY (or GOOGLE_API_KEY),
        GEMINI_SCENE_MODEL, FIREFLY_MODEL_VERSION.
        """
        env = os.environ if environ is None else environ

        missing = [name for name in ("FFS_CLIENT_ID", "FFS_CLIENT_SECRET") if not env.get(name)]
        if missing:
            raise ConfigError(
                f"{', '.join(missing)} environment variable(s) required, but not set."
            )

        values = dict(
            firefly_client_id=env["FFS_CLIENT_ID"],
            firefly_client_secret=env["FFS_CLIENT_SECRET"],
            firefly_base_url=env.get("FIREFLY_BASE_URL") or DEFAULT_FIREFLY_BASE_URL,
            ims_token_url=env.get("IMS_TOKEN_URL") or DEFAULT_IMS_TOKEN_URL,
            firefly_scopes=env.get("FFS_SCOPES") or DEFAULT_FIREFLY_SCOPES,
            gemini_api_key=env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY") or None,
            scene_model=env.get("GEMINI_SCENE_MODEL") or DEFAULT_SCENE_MODEL,
            image_model_version=env.get("FIREFLY_MODEL_VERSION") or None,
        )
        values.update(overrides)
        return cls(**values)
