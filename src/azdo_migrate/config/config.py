"""Configuration management for Azure DevOps Migration Tool."""

from typing import Optional, Dict, Any, List
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator
import yaml
from dotenv import load_dotenv

from ..models.repository import Scope


SUPPORTED_REPORT_FORMATS = ('json', 'html')


class AzureDevOpsInstanceConfig(BaseModel):
    """Configuration for one side (source or destination) of a migration."""

    url: str = Field(
        default='https://dev.azure.com', description='Azure DevOps base URL'
    )
    organization: str = Field(..., description='Organization name')
    project: str = Field(..., description='Project name')
    token: Optional[str] = Field(default=None, description='Personal access token')
    api_version: str = Field(default='7.1', description='REST API version')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Validate base URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('organization', 'project')
    @classmethod
    def validate_not_blank(cls, v):
        """Organization and project must be non-empty."""
        if not v or not v.strip():
            raise ValueError('must not be empty')
        return v.strip()

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        """Strip the token; treat a blank one as missing."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Request timeout must be positive')
        return v

    @property
    def scope(self) -> Scope:
        """Organization/project pair addressed by this configuration."""
        return Scope(organization=self.organization, project=self.project)


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    filter: Optional[str] = Field(
        default=None, description='Regular expression selecting repositories'
    )
    repo_list: Optional[str] = Field(
        default=None, description='File listing the repositories to migrate'
    )
    dry_run: bool = Field(default=False, description='Perform dry run without changes')
    force_push: bool = Field(
        default=False, description='Force push to repositories that already exist'
    )
    trace: bool = Field(default=False, description='Detailed trace output')
    timeout: int = Field(
        default=1800, description='Overall deadline for a migration run in seconds'
    )

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Migration timeout must be positive')
        return v


class GitConfig(BaseModel):
    """Git operations configuration."""

    temp_dir: Optional[str] = Field(
        default=None,
        description='Base directory for the migration workspace. If not specified, uses system temp directory.',
    )
    timeout: int = Field(
        default=3600, description='Git command timeout in seconds (default: 1 hour)'
    )
    executable: str = Field(default='git', description='Git executable')

    @field_validator('temp_dir')
    @classmethod
    def validate_temp_dir(cls, v):
        """Validate temp directory path."""
        if v is not None:
            temp_path = Path(v)
            if not temp_path.is_absolute():
                raise ValueError('temp_dir must be an absolute path')
            # Create directory if it doesn't exist
            temp_path.mkdir(parents=True, exist_ok=True)
            if not temp_path.is_dir():
                raise ValueError(f'temp_dir path is not a directory: {v}')
        return v

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Git timeout must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class ReportConfig(BaseModel):
    """Migration report output."""

    formats: List[str] = Field(
        default_factory=list, description='Report formats (json, html)'
    )
    path: Optional[str] = Field(
        default=None, description='Directory for report files (default: temp dir)'
    )

    @field_validator('formats')
    @classmethod
    def validate_formats(cls, v):
        """Validate and normalise report formats."""
        formats = [f.strip().lower() for f in v if f and f.strip()]
        for f in formats:
            if f not in SUPPORTED_REPORT_FORMATS:
                raise ValueError(
                    f'Unsupported report format: {f} (only json, html are allowed)'
                )
        return formats

    @field_validator('path')
    @classmethod
    def validate_path(cls, v):
        """Report path must be an existing directory."""
        if v is not None and not Path(v).is_dir():
            raise ValueError(f'report path must be an existing directory: {v}')
        return v


class Config(BaseModel):
    """Main configuration class for Azure DevOps Migration Tool."""

    model_config = ConfigDict(extra='forbid')

    source: AzureDevOpsInstanceConfig = Field(..., description='Source scope')
    destination: Optional[AzureDevOpsInstanceConfig] = Field(
        default=None, description='Destination scope'
    )
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    git: GitConfig = Field(
        default_factory=GitConfig, description='Git operations settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )
    report: ReportConfig = Field(
        default_factory=ReportConfig, description='Report settings'
    )

    @staticmethod
    def read_file(config_path: str) -> Dict[str, Any]:
        """Read the raw configuration mapping of a YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f'Configuration file is not a mapping: {config_path}')
        return config_data

    @classmethod
    def env_data(cls) -> Dict[str, Any]:
        """Read the raw configuration mapping of the environment.

        Unset variables are left out so that other layers can supply them.
        """
        # Load .env file if it exists
        load_dotenv()

        base_url = os.getenv('AZDO_URL')
        migration_timeout = os.getenv('MIGRATION_TIMEOUT')
        git_timeout = os.getenv('GIT_TIMEOUT')
        config_data = {
            'source': {
                'url': base_url,
                'organization': os.getenv('SRC_ORG'),
                'project': os.getenv('SRC_PROJECT'),
                'token': os.getenv('SRC_PAT'),
            },
            'destination': {
                'url': base_url,
                'organization': os.getenv('DST_ORG'),
                'project': os.getenv('DST_PROJECT'),
                'token': os.getenv('DST_PAT'),
            },
            'migration': {
                'timeout': int(migration_timeout) if migration_timeout else None,
            },
            'git': {
                'temp_dir': os.getenv('GIT_TEMP_DIR'),
                'timeout': int(git_timeout) if git_timeout else None,
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        return cls._remove_none_values(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        return cls(**cls.read_file(config_path))

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        return cls.from_layers(cls.env_data())

    @classmethod
    def from_layers(cls, *layers: Dict[str, Any]) -> 'Config':
        """Build configuration from raw mappings; later layers win.

        A destination without organization or project is treated as not
        configured.
        """
        config_data: Dict[str, Any] = {}
        for layer in layers:
            config_data = cls._merge(config_data, cls._remove_none_values(layer))

        destination = config_data.get('destination') or {}
        if not destination.get('organization') or not destination.get('project'):
            config_data.pop('destination', None)

        return cls(**config_data)

    @staticmethod
    def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge ``override`` into a copy of ``base``."""
        merged = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = Config._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def require_destination(self) -> AzureDevOpsInstanceConfig:
        """Return the destination configuration, failing when it is incomplete.

        Raises:
            ValueError: If the destination scope or its token is missing
        """
        if self.destination is None:
            raise ValueError(
                'Destination not configured (--dst-org, --dst-project)'
            )
        if not self.destination.token:
            raise ValueError('DST_PAT environment variable missing for destination')
        return self.destination

    def require_source_token(self) -> str:
        """Return the source token, failing when it is missing."""
        if not self.source.token:
            raise ValueError('SRC_PAT environment variable missing')
        return self.source.token

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'source': {
                'url': 'https://dev.azure.com',
                'organization': 'source-organization',
                'project': 'SourceProject',
                'api_version': '7.1',
                'timeout': 30,
            },
            'destination': {
                'url': 'https://dev.azure.com',
                'organization': 'destination-organization',
                'project': 'DestinationProject',
                'api_version': '7.1',
                'timeout': 30,
            },
            'migration': {
                'filter': '^team-.*$',
                'dry_run': True,
                'force_push': False,
                'trace': False,
                'timeout': 1800,
            },
            'git': {
                'timeout': 3600,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
            'report': {
                'formats': ['json', 'html'],
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            f.write(
                '# Tokens are read from the SRC_PAT and DST_PAT environment variables\n'
            )
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
