"""Configuration loading and validation.

Usage:
    config = load("sonar-config.yaml")       # raises ConfigError on bad config
    key = config.resolve_project("wcs")      # returns "ch.corren.wcs"
    settings = FetchSettings.from_env()      # pagination limits for the web app
    generate_template("sonar-config.yaml")   # writes example file to disk
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from sonar_export.client import MAX_PAGES, PAGE_SIZE

# SonarQube rejects ps > 500 on /api/issues/search
MAX_PAGE_SIZE = 500


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


class ProjectNotFoundError(ConfigError):
    """Raised when a project alias is not found in the config."""


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchSettings:
    page_size: int = PAGE_SIZE
    max_pages: int = MAX_PAGES
    timeout: int = 30

    @classmethod
    def from_mapping(cls, raw: dict[str, Any], source: str = "export") -> "FetchSettings":
        """Build settings from a mapping, falling back to defaults for absent keys.

        Raises:
            ConfigError: if a value is not a positive integer or page_size > 500.
        """
        defaults = cls()
        values = {}
        for name in ("page_size", "max_pages", "timeout"):
            value = raw.get(name)
            if value is None:
                values[name] = getattr(defaults, name)
                continue
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ConfigError(f"'{source}.{name}' must be an integer, got {value!r}") from None
            if number <= 0:
                raise ConfigError(f"'{source}.{name}' must be positive, got {number}")
            values[name] = number

        if values["page_size"] > MAX_PAGE_SIZE:
            raise ConfigError(
                f"'{source}.page_size' cannot exceed {MAX_PAGE_SIZE} (SonarQube limit)"
            )
        return cls(**values)

    @classmethod
    def from_env(cls) -> "FetchSettings":
        """Read SONAR_EXPORT_PAGE_SIZE, SONAR_EXPORT_MAX_PAGES and SONAR_EXPORT_TIMEOUT."""
        return cls.from_mapping(
            {
                "page_size": os.environ.get("SONAR_EXPORT_PAGE_SIZE"),
                "max_pages": os.environ.get("SONAR_EXPORT_MAX_PAGES"),
                "timeout":   os.environ.get("SONAR_EXPORT_TIMEOUT"),
            },
            source="SONAR_EXPORT",
        )


@dataclass
class Config:
    url: str
    token: str
    projects: dict[str, str] = field(default_factory=dict)
    fetch: FetchSettings = field(default_factory=FetchSettings)

    def resolve_project(self, name: str) -> str:
        """Return the SonarQube project key for a given alias.

        Accepts either a configured alias (e.g. "wcs") or a raw project key
        passed directly (e.g. "ch.corren.wcs") as a convenience fallback.
        """
        if name in self.projects:
            return self.projects[name]
        if name in self.projects.values():
            return name
        available = ", ".join(self.projects.keys()) or "(none configured)"
        raise ProjectNotFoundError(
            f"Project '{name}' not found. Available aliases: {available}"
        )


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = "sonar-config.yaml") -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables SONAR_URL and SONAR_TOKEN override file values.

    Raises:
        ConfigError: if the file is missing, malformed, or required fields
                     are absent.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `sonar-export init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")

    server = raw.get("server") or {}
    url   = os.environ.get("SONAR_URL")   or server.get("url",   "")
    token = os.environ.get("SONAR_TOKEN") or server.get("token", "")
    projects: dict[str, str] = raw.get("projects") or {}

    export = raw.get("export") or {}
    if not isinstance(export, dict):
        raise ConfigError("'export' must be a mapping")

    config = Config(
        url=str(url).strip(),
        token=str(token).strip(),
        projects=projects,
        fetch=FetchSettings.from_mapping(export),
    )
    _validate(config)
    return config


def _validate(config: Config) -> None:
    """Raise ConfigError if required fields are missing."""
    errors: list[str] = []

    if not config.url:
        errors.append(
            "  - 'server.url' is missing (or set the SONAR_URL environment variable)"
        )
    if not config.token:
        errors.append(
            "  - 'server.token' is missing (or set the SONAR_TOKEN environment variable)"
        )
    if not config.projects:
        errors.append(
            "  - 'projects' mapping is empty, add at least one project alias"
        )

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
server:
  url: "http://localhost:9000"
  token: "squ_xxxxxxxxxxxx"       # Generate at: <your-sonar-url>/account/security

projects:
  # Human-readable alias: SonarQube project key
  my-project: "com.example.my-project"
  another:    "com.example.another-service"

export:
  page_size: 500    # issues per request (SonarQube maximum)
  max_pages: 20     # hard ceiling: 20 x 500 = 10 000 issues
  timeout: 30       # seconds per request
"""


def generate_template(output_path: str = "sonar-config.yaml") -> None:
    """Write a template sonar-config.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
