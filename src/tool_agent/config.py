# config.py
# Settings are read once at startup from the process environment (and a
# local .env file, if present). A missing credential fails here, never
# inside the loop.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

DEFAULT_BASE_URL = "https://integrate.api.nvidia.com/v1"
DEFAULT_MODEL = "qwen/qwen3-coder-480b-a35b-instruct"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class Settings(BaseModel):
    api_key: str = Field(..., min_length=1)
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, gt=0)
    max_iterations: int = Field(default=25, gt=0)
    round_timeout: float | None = Field(default=120.0, gt=0)
    # SDK retries each get the full round_timeout; 0 keeps the round a hard deadline.
    max_retries: int = Field(default=0, ge=0)
    correct_unknown_steps: bool = False
    log_level: str = "WARNING"


# Environment variable → Settings field
_ENV_FIELDS = {
    "AGENT_BASE_URL": "base_url",
    "AGENT_MODEL": "model",
    "AGENT_TEMPERATURE": "temperature",
    "AGENT_MAX_TOKENS": "max_tokens",
    "AGENT_MAX_ITERATIONS": "max_iterations",
    "AGENT_ROUND_TIMEOUT": "round_timeout",
    "AGENT_MAX_RETRIES": "max_retries",
    "AGENT_CORRECT_UNKNOWN_STEPS": "correct_unknown_steps",
    "AGENT_LOG_LEVEL": "log_level",
}


def load_settings(env: dict[str, str] | None = None) -> Settings:
    """
    Build Settings from `env` (defaults to os.environ after loading .env).

    Raises ConfigError if NVIDIA_API_KEY is absent or any value fails validation.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    api_key = env.get("NVIDIA_API_KEY", "").strip()
    if not api_key:
        raise ConfigError("NVIDIA_API_KEY is not set. Add it to the environment or a .env file.")

    values: dict[str, object] = {"api_key": api_key}
    for var, field in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        values[field] = raw.strip()

    if str(values.get("round_timeout", "")).lower() in ("0", "none", "off"):
        values["round_timeout"] = None

    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
