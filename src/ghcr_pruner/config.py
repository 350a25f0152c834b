"""Configuration for the ghcr.io temporary tag pruner."""

from __future__ import annotations

import datetime
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import (
    BeforeValidator,
    Field,
    HttpUrl,
    SecretStr,
    ValidationError,
)
from safir.pydantic import CamelCaseModel

from .exceptions import ConfigurationError, MissingCredentialError

# Field name to the environment variable it is read from.
REQUIRED_ENV = {
    "repo": "REPO",
    "owner": "OWNER",
    "keep_tags": "KEEP_TAGS",
    "retention_days": "RETENTION_DAYS",
    "temp_tag_regex": "TEMP_TAG_REGEX",
    "actor": "GITHUB_ACTOR",
}

OPTIONAL_ENV = {
    "debug": "DEBUG",
    "dry_run": "DRY_RUN",
    "registry_url": "REGISTRY_URL",
    "api_url": "GITHUB_API_URL",
}

TOKEN_ENV = ("GITHUB_TOKEN", "GH_TOKEN")

TRUTHY = {"1", "true", "yes", "on"}


def _split_tags(inp: Any) -> Any:
    if isinstance(inp, str):
        return inp.split()
    return inp


def _loose_flag(inp: Any) -> Any:
    # Anything other than a recognized "on" spelling means off.
    if isinstance(inp, str):
        return inp.strip().lower() in TRUTHY
    return inp


def _token_from_env(environ: Mapping[str, str]) -> str | None:
    for var in TOKEN_ENV:
        if environ.get(var):
            return environ[var]
    return None


class PrunerConfig(CamelCaseModel):
    """Settings for one pruning run against one container package."""

    repo: Annotated[
        str,
        Field(
            title="Repository",
            description="owner/name of the image's source repository",
            examples=["octo-org/widget"],
        ),
    ]

    owner: Annotated[
        str,
        Field(
            title="Owner",
            description="Registry namespace owner (user or organization)",
            examples=["octo-org"],
        ),
    ]

    keep_tags: Annotated[
        list[str],
        BeforeValidator(_split_tags),
        Field(
            title="Keep tags",
            description=(
                "Tags whose manifests (and child manifests) must never be "
                "deleted.  A string is split on whitespace."
            ),
            examples=[["latest", "main"]],
            min_length=1,
        ),
    ]

    retention_days: Annotated[
        int,
        Field(
            title="Retention days",
            description="Temporary tags updated more recently are kept",
            examples=[3],
            ge=0,
        ),
    ]

    temp_tag_regex: Annotated[
        re.Pattern[str],
        Field(
            title="Temporary tag pattern",
            description="Regular expression identifying disposable tags",
            examples=["^[0-9a-f]{7,40}-(amd64|arm64)$"],
        ),
    ]

    actor: Annotated[
        str,
        Field(
            title="Actor",
            description="Username for the registry token exchange",
            examples=["octocat"],
        ),
    ]

    token: Annotated[
        SecretStr | None,
        Field(
            title="Token",
            description="GitHub token for both the registry and the API",
        ),
    ] = None

    debug: Annotated[
        bool,
        BeforeValidator(_loose_flag),
        Field(
            title="Debug",
            description=(
                "Verbose logging.  Unrecognized values turn it off rather "
                "than failing."
            ),
        ),
    ] = False

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Plan and report, but do not delete anything.",
        ),
    ] = False

    registry_url: Annotated[
        HttpUrl,
        Field(
            title="Registry URL",
            description="Base URL of the container registry",
        ),
    ] = HttpUrl("https://ghcr.io")

    api_url: Annotated[
        HttpUrl,
        Field(
            title="API URL",
            description="Base URL of the GitHub REST API",
        ),
    ] = HttpUrl("https://api.github.com")

    @property
    def namespace(self) -> str:
        """GHCR namespaces are lower-case."""
        return self.owner.lower()

    @property
    def image(self) -> str:
        return self.repo.split("/", 1)[-1].lower()

    @property
    def registry_repository(self) -> str:
        return f"{self.namespace}/{self.image}"

    def cutoff(self, now: datetime.datetime) -> datetime.datetime:
        """Versions updated strictly before this are eligible."""
        return now - datetime.timedelta(days=self.retention_days)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """Read settings from environment variables.

        Empty variables count as missing, as with ``${VAR:?}``.
        """
        if environ is None:
            environ = os.environ
        data: dict[str, Any] = {}
        for name, var in REQUIRED_ENV.items():
            value = environ.get(var, "")
            if not value:
                raise ConfigurationError(f"missing {var}")
            data[name] = value
        for name, var in OPTIONAL_ENV.items():
            if environ.get(var):
                data[name] = environ[var]
        data["token"] = _token_from_env(environ)
        return cls._build(data)

    @classmethod
    def from_file(
        cls, path: Path, environ: Mapping[str, str] | None = None
    ) -> Self:
        """Read settings from YAML.  The token, and the actor if the file
        does not name one, come from the environment.
        """
        if environ is None:
            environ = os.environ
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")
        data["token"] = _token_from_env(environ)
        if "actor" not in data and environ.get("GITHUB_ACTOR"):
            data["actor"] = environ["GITHUB_ACTOR"]
        return cls._build(data)

    @classmethod
    def _build(cls, data: dict[str, Any]) -> Self:
        if not data.get("token"):
            raise MissingCredentialError(
                "GITHUB_TOKEN/GH_TOKEN not available. "
                "Check workflow permissions."
            )
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
