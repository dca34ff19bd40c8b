"""
Migration configuration loading.

The migration config file holds the incident.io destination settings and
the service-to-team mappings. It is written by ``init-config`` /
``generate-mappings``, edited by hand, and read by every migrating
command. YAML and JSON are both accepted (JSON is read with the YAML
parser); files are written back in the format their suffix implies.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ferry.config.exceptions import ConfigurationError
from ferry.models.destination import DestinationConfig, PerTeamWebhookConfig, SingleWebhookConfig
from ferry.models.mapping import ServiceMapping
from ferry.utils.logger import get_module_logger
from ferry.utils.markers import Provider

logger = get_module_logger(__name__)


class IncidentioConfigModel(BaseModel):
    """
    ``incidentioConfig`` section exactly as it appears in the file.

    Converted into the SingleWebhookConfig / PerTeamWebhookConfig union
    by ``to_destination_config``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    webhook_per_team: bool = Field(default=False, alias="webhookPerTeam")
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")
    webhook_token: Optional[str] = Field(default=None, alias="webhookToken")
    add_team_tags: bool = Field(default=False, alias="addTeamTags")
    team_tag_prefix: str = Field(default="team", alias="teamTagPrefix", min_length=1)
    source: Provider = Field(default=Provider.PAGERDUTY)

    def to_destination_config(self, fallback_token: Optional[str] = None) -> DestinationConfig:
        """
        Build the destination config for this section.

        Args:
            fallback_token: Token used when the file carries none
                (typically INCIDENTIO_WEBHOOK_TOKEN)
        """
        token = self.webhook_token or fallback_token
        if self.webhook_per_team:
            if self.add_team_tags:
                logger.warning("addTeamTags is ignored when webhookPerTeam is enabled")
            return PerTeamWebhookConfig(
                source=self.source,
                webhook_url=self.webhook_url,
                webhook_token=token,
            )
        return SingleWebhookConfig(
            source=self.source,
            webhook_url=self.webhook_url,
            webhook_token=token,
            add_team_tags=self.add_team_tags,
            team_tag_prefix=self.team_tag_prefix,
        )


class MigrationConfigFile(BaseModel):
    """Root structure of the migration config file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    incidentio_config: IncidentioConfigModel = Field(
        default_factory=IncidentioConfigModel, alias="incidentioConfig"
    )
    mappings: List[ServiceMapping] = Field(default_factory=list)


class MigrationConfig(BaseModel):
    """Validated configuration handed to the migration services."""

    destination: DestinationConfig
    mappings: List[ServiceMapping] = Field(default_factory=list)

    @property
    def provider(self) -> Provider:
        return self.destination.source


def create_default_config() -> Dict[str, Any]:
    """Default config file content, in the file's camelCase shape."""
    return {
        "incidentioConfig": {
            "webhookPerTeam": False,
            "webhookUrl": None,
            "webhookToken": None,
            "addTeamTags": False,
            "teamTagPrefix": "team",
            "source": Provider.PAGERDUTY.value,
        },
        "mappings": [],
    }


def _is_json_path(path: Path) -> bool:
    return path.suffix.lower() == ".json"


def write_config_file(path: Path, data: Dict[str, Any]) -> None:
    """Write raw config content, as JSON or YAML depending on the suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if _is_json_path(path):
            json.dump(data, f, indent=2)
            f.write("\n")
        else:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


class MigrationConfigLoader:
    """
    Loads and validates the migration config file.

    Every loading problem is reported as a ConfigurationError with a
    message naming the file and what to fix.
    """

    def __init__(self, config_file_path: str, fallback_token: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_file_path: Path to the YAML or JSON configuration file
            fallback_token: incident.io token used when the file has none
        """
        self.config_file_path = Path(config_file_path).expanduser().resolve()
        self.fallback_token = fallback_token

    def load_raw(self, create: bool = False) -> Dict[str, Any]:
        """
        Read the file without validating it.

        Args:
            create: Write and return the default config if the file is missing

        Raises:
            ConfigurationError: If the file is missing (and create is False),
                unreadable, malformed, or its root is not a mapping
        """
        if not self.config_file_path.exists():
            if not create:
                raise ConfigurationError(f"Config file not found: {self.config_file_path}")
            raw = create_default_config()
            write_config_file(self.config_file_path, raw)
            logger.info(f"Created new config file at {self.config_file_path}")
            return raw

        try:
            with open(self.config_file_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except PermissionError as e:
            raise ConfigurationError(
                f"Permission denied accessing configuration file {self.config_file_path}: {e}"
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to load config: invalid YAML/JSON in {self.config_file_path}: {e}"
            ) from e

        if raw is None:
            logger.info(f"Configuration file {self.config_file_path} is empty, using defaults")
            return create_default_config()

        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"Configuration file root must be a mapping, got {type(raw).__name__}. "
                f"Expected format: incidentioConfig: {{...}}, mappings: [...]"
            )
        return raw

    def load(self, create: bool = False) -> MigrationConfig:
        """
        Load, parse and validate the configuration file.

        Args:
            create: Write and return the default config if the file is missing

        Returns:
            MigrationConfig with the destination union and mappings

        Raises:
            ConfigurationError: For any loading or validation failure
        """
        logger.info(f"Loading configuration from: {self.config_file_path}")
        raw = self.load_raw(create=create)

        try:
            parsed = MigrationConfigFile.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(self._format_validation_error(e)) from e

        config = MigrationConfig(
            destination=parsed.incidentio_config.to_destination_config(self.fallback_token),
            mappings=parsed.mappings,
        )
        logger.info(
            f"Loaded {len(config.mappings)} mappings "
            f"({config.destination.mode} webhook mode, source {config.provider.value})"
        )
        return config

    def _format_validation_error(self, error: ValidationError) -> str:
        lines = []
        for err in error.errors():
            location = ".".join(str(part) for part in err["loc"])
            lines.append(f"  - {location}: {err['msg']}")
        return (
            f"Invalid configuration in {self.config_file_path}:\n" + "\n".join(lines)
        )


def save_mappings(config_file_path: str, mappings: Sequence[ServiceMapping]) -> None:
    """
    Replace the ``mappings`` section of a config file, keeping everything else.

    Raises:
        ConfigurationError: If the existing file cannot be read
    """
    loader = MigrationConfigLoader(config_file_path)
    raw = loader.load_raw(create=True)
    raw["mappings"] = [mapping.to_config_dict() for mapping in mappings]
    try:
        write_config_file(loader.config_file_path, raw)
    except OSError as e:
        raise ConfigurationError(f"Failed to write config file {loader.config_file_path}: {e}") from e
    logger.info(f"Saved {len(mappings)} mappings to {loader.config_file_path}")

