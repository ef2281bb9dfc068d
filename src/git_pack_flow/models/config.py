"""Settings read from the repository's git config."""

from typing import Any

from git import Repo
from pydantic import BaseModel, ValidationError, field_validator

from git_pack_flow.core.errors import ConfigError

CONFIG_SECTION = "packflow"


class FlowConfig(BaseModel):
    """Per-repository settings for git-pack-flow.

    Values come from the ``[packflow]`` section of git config, for example::

        git config packflow.trunk develop
        git config packflow.verifySignatures true
    """

    trunk: str = "main"
    extension: str = "bundle"
    verify_signatures: bool = False

    @field_validator("trunk")
    @classmethod
    def _trunk_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("trunk branch name must not be empty")
        return value.strip()

    @field_validator("extension")
    @classmethod
    def _strip_extension_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value or "/" in value:
            raise ValueError(f"invalid artifact extension: {value!r}")
        return value

    @classmethod
    def from_repo(cls, repo: Repo, **overrides: Any) -> "FlowConfig":
        """Load settings from git config, then apply non-None ``overrides``."""
        values = {}
        reader = repo.config_reader()
        if reader.has_section(CONFIG_SECTION):
            # git config keys are case-insensitive
            options = {
                name.lower(): value for name, value in reader.items(CONFIG_SECTION)
            }
            for key, option in (
                ("trunk", "trunk"),
                ("extension", "extension"),
                ("verify_signatures", "verifysignatures"),
            ):
                if option in options:
                    values[key] = options[option]

        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            problems = "; ".join(
                f"{error['loc'][0]}: {error['msg']}" for error in e.errors()
            )
            raise ConfigError(f"Invalid {CONFIG_SECTION} setting ({problems})") from e
