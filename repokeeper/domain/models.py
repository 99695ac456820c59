from typing import Dict, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from yarl import URL

from repokeeper.domain.config_tree import ConfigMapping
from repokeeper.domain.exceptions import ConfigFormatError

WILDCARD = "*"


class Key(BaseModel):
    """
    Hierarchical storage key, e.g. origin/my-pypi/alarmtime/alarmtime-0.1.5.tar.gz.
    """
    model_config = ConfigDict(frozen=True)

    parts: Tuple[str, ...] = Field(..., min_length=1, description="Path segments of the key")

    @field_validator("parts")
    @classmethod
    def _validate_parts(cls, parts: Tuple[str, ...]) -> Tuple[str, ...]:
        for part in parts:
            if not part or "/" in part:
                raise ValueError(f"Invalid key segment: {part!r}")
            if part in (".", ".."):
                raise ValueError(f"Relative key segment is not allowed: {part!r}")
        return parts

    @classmethod
    def of(cls, *segments: str) -> "Key":
        """Builds a key from segments, each of which may itself contain slashes."""
        parts = tuple(part for segment in segments for part in segment.split("/") if part)
        return cls(parts=parts)

    @property
    def parent(self) -> Optional["Key"]:
        if len(self.parts) == 1:
            return None
        return Key(parts=self.parts[:-1])

    def string(self) -> str:
        return "/".join(self.parts)

    def __str__(self) -> str:
        return self.string()


class RemoteSource(BaseModel):
    """
    One upstream origin of a proxy repository.
    Position in the repository's remotes list is its fallback priority.
    """
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Absolute http(s) base URL of the remote")
    username: Optional[str] = Field(default=None, description="Basic auth user name")
    password: Optional[str] = Field(default=None, repr=False, description="Basic auth password")

    @field_validator("url")
    @classmethod
    def _absolute_http_url(cls, value: str) -> str:
        url = URL(value)
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"Remote url must be an absolute http(s) URL: {value!r}")
        return value

    @model_validator(mode="after")
    def _credentials_pair(self) -> "RemoteSource":
        if (self.username is None) != (self.password is None):
            raise ValueError("Remote username and password must be specified together")
        return self

    @property
    def has_credentials(self) -> bool:
        return self.username is not None


class PermissionSet(BaseModel):
    """
    Permissions of a repository: user name to granted actions.
    "*" as a user grants to everyone, "*" as an action grants every action.
    Only answers queries, nothing here enforces them.
    """
    model_config = ConfigDict(frozen=True)

    grants: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: ConfigMapping) -> "PermissionSet":
        grants = {}
        for user in mapping:
            actions = mapping.sequence(user)
            if actions is None:
                raise ConfigFormatError(f"Permissions of '{user}' must be a sequence of actions.")
            for action in actions:
                if isinstance(action, (ConfigMapping, tuple)) or action is None:
                    raise ConfigFormatError(f"Permission action of '{user}' must be a scalar.")
            grants[user] = tuple(str(action) for action in actions)
        return cls(grants=grants)

    def allowed(self, user: str, action: str) -> bool:
        for name in (user, WILDCARD):
            actions = self.grants.get(name, ())
            if WILDCARD in actions or action in actions:
                return True
        return False
