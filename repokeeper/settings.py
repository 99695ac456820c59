import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from repokeeper.domain.exceptions import ConfigFormatError, MissingFieldError

ENV_PREFIX = "REPOKEEPER_"


class Settings(BaseModel):
    """Process-wide settings, read from REPOKEEPER_* environment variables."""
    model_config = ConfigDict(frozen=True)

    config_dir: Path = Field(..., description="Directory holding repository and alias documents")
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    remote_timeout: float = Field(default=30.0, gt=0, description="Total timeout of one remote attempt, seconds")
    remote_connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout of one remote attempt, seconds")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        config_dir = environ.get(f"{ENV_PREFIX}CONFIG_DIR")
        if not config_dir:
            raise MissingFieldError(f"{ENV_PREFIX}CONFIG_DIR")

        values = {"config_dir": config_dir}
        for field in ("log_level", "remote_timeout", "remote_connect_timeout"):
            env_var = f"{ENV_PREFIX}{field.upper()}"
            if env_var in environ:
                values[field] = environ[env_var]
        if "log_level" in values:
            values["log_level"] = values["log_level"].upper()

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigFormatError(f"Invalid {ENV_PREFIX}* settings: {e}") from e
