"""Configuration models."""

import json
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("changelog-tool.json")


class ConfigError(Exception):
    """Raised when the changelog configuration cannot be loaded."""


class OutputType(str, Enum):
    """Files the changelog can be written as."""

    MARKDOWN = "markdown"
    VERSION_TXT = "version_txt"


class ChangelogConfig(BaseModel):
    """What to generate a changelog for, usually read from ``changelog-tool.json``."""

    model_config = {"extra": "ignore"}

    repo_path: Optional[Path] = Field(None, description="Local path to the git repository")
    github_repo_owner: Optional[str] = Field(None, description="GitHub organisation or user")
    github_repo_name: Optional[str] = Field(None, description="GitHub repository name")
    branch: Optional[str] = Field(None, description="Branch the release is cut from")
    tag_version_prior: Optional[str] = Field(None, description="Tag of the previous release")
    ref_version_current: Optional[str] = Field(None, description="Ref of the release being described")
    label_exclusions: List[str] = Field(
        default_factory=list,
        description="Issue/PR labels that keep an item out of the changelog",
    )
    commit_path_regex_exclusions: List[str] = Field(
        default_factory=list,
        description="Path regexes ignored when deciding if a commit is interesting",
    )
    branch_regex_exclusions: List[str] = Field(
        default_factory=list,
        description="Branch regexes; commits on a matching branch are excluded",
    )
    include_dependency_changes: bool = Field(False, description="Add a dependency bump section")
    output_path: Optional[Path] = Field(None, description="Directory to write results into")
    output_types: List[OutputType] = Field(default_factory=list)
    authors_file: Optional[Path] = Field(None, description="JSON list of known authors")

    @classmethod
    def load(cls, path: Path) -> "ChangelogConfig":
        """Load configuration from a JSON file.

        Args:
            path: Path to the JSON config file

        Returns:
            ChangelogConfig object

        Raises:
            ConfigError: If the file is missing or invalid
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file does not exist: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

    def missing_fields(self) -> List[str]:
        """Names of the settings a run cannot do without."""
        required = (
            "repo_path",
            "github_repo_owner",
            "github_repo_name",
            "branch",
            "tag_version_prior",
        )
        return [name for name in required if getattr(self, name) in (None, "")]


def _read_token_file() -> Optional[str]:
    home = Path.home()
    for location in (home / ".github", home / ".github" / "oauth"):
        if not location.is_file():
            continue
        try:
            for line in location.read_text(encoding="utf-8").splitlines():
                key, sep, value = line.partition("=")
                if sep and key.strip() == "oauth" and value.strip():
                    return value.strip()
        except OSError:
            continue
    return None


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables.

    All settings are prefixed with RELEASELOG_ (e.g. RELEASELOG_CACHE_DIR),
    except the GitHub token which follows the usual GITHUB_TOKEN convention.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELEASELOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    github_token: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GITHUB_TOKEN", "GITHUB_OAUTH", "RELEASELOG_GITHUB_TOKEN"),
    )
    github_api_url: str = "https://api.github.com"

    cache_dir: Path = Path.home() / ".cache" / "releaselog"

    # Remote calls
    request_timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.5
    max_backoff: float = 30.0
    max_rate_wait: float = 900.0

    # Resolution
    fail_fast: bool = True
    max_references: int = 5000
    deadline_seconds: Optional[float] = None

    # Logging
    log_level: str = "INFO"

    def resolve_token(self) -> Optional[str]:
        """GitHub token from the environment, else from ``~/.github``."""
        return self.github_token or _read_token_file()
