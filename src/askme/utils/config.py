import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from askme.errors import ConfigError, NotFoundError

CONFIG_FILENAME = "askme.yml"

logger = logging.getLogger(__name__)


class ServiceClass(str, Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]


def get_user_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config_home)


def get_global_config_path() -> Optional[Path]:
    if sys.platform == "win32":
        program_data = os.environ.get("ProgramData")
        if not program_data:
            return None
        return Path(program_data) / "askme" / CONFIG_FILENAME
    if sys.platform == "darwin":
        return Path("/Library/Application Support/askme") / CONFIG_FILENAME
    return Path("/etc") / CONFIG_FILENAME


def default_search_paths(cwd: Optional[Path] = None) -> List[Path]:
    """Auto-discovered config files, lowest precedence first."""
    paths: List[Path] = []
    global_path = get_global_config_path()
    if global_path:
        paths.append(global_path)
    paths.append(get_user_config_dir() / CONFIG_FILENAME)
    paths.append((cwd or Path.cwd()) / CONFIG_FILENAME)
    return paths


DOTENV_PATH = get_user_config_dir() / "askme" / ".env"


class Settings(BaseSettings):
    """Runtime settings taken from ASKME_* environment variables or the .env file."""
    REQUEST_TIMEOUT: float = Field(default=120.0, description="Read timeout for provider calls, in seconds")
    CONNECT_TIMEOUT: float = Field(default=10.0, description="Connect timeout for provider calls, in seconds")
    MAX_TOKENS: int = Field(default=4096, description="Default max_tokens for providers that require one (anthropic)")
    CONFIG: Optional[str] = Field(default=None, description="Config file to load on top of the discovered ones (same as --config)")
    VERBOSE: bool = Field(default=False, description="Log request summaries")
    DEBUG: bool = Field(default=False, description="Log debug output")

    model_config = SettingsConfigDict(
        env_prefix="ASKME_",
        env_file=DOTENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra='ignore'
    )


class ServiceConfig(BaseModel):
    """One named service from the ``services`` mapping."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    class_: str = Field(alias="class")
    description: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    url: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    thinking_budget: Optional[int] = Field(default=None, gt=0)
    list_models: bool = True

    @property
    def has_known_class(self) -> bool:
        return self.class_ in ServiceClass.names()


class ConfigModel(BaseModel):
    """Merged configuration: defaults, named system prompts and services."""
    model_config = ConfigDict(frozen=True)

    default_service: Optional[str] = None
    default_prompt: Optional[str] = None
    system_prompts: Dict[str, str] = Field(default_factory=dict)
    services: Dict[str, ServiceConfig] = Field(default_factory=dict)
    sources: List[Path] = Field(default_factory=list, exclude=True)

    def get_service(self, name: Optional[str] = None) -> tuple[str, ServiceConfig]:
        """Return ``(name, service)`` for ``name`` or the default service."""
        service_name = name or self.default_service
        if not service_name:
            raise NotFoundError("No service given and no 'default_service' configured")
        service = self.services.get(service_name)
        if service is None:
            available = ", ".join(sorted(self.services)) or "none"
            if name:
                raise NotFoundError(f"Service '{service_name}' not found. Available services: {available}")
            raise NotFoundError(f"Default service '{service_name}' not found. Available services: {available}")
        return service_name, service

    def get_prompt(self, name: str) -> str:
        try:
            return self.system_prompts[name]
        except KeyError:
            raise NotFoundError(f"System prompt '{name}' not found") from None

    def resolve_prompt_name(self, name: str, origin: str) -> str:
        """Look up a prompt referenced from the config file.

        References in the config file are names only; an unknown name is an
        error rather than literal prompt text.
        """
        if name in self.system_prompts:
            return self.system_prompts[name]
        raise ConfigError(f"{origin} references unknown system prompt '{name}'")

    def validate_references(self) -> List[str]:
        """Return warnings for services whose system_prompt does not resolve."""
        warnings = []
        for service_name, service in self.services.items():
            if service.system_prompt and service.system_prompt not in self.system_prompts:
                warnings.append(
                    f"Service '{service_name}' references unknown system prompt '{service.system_prompt}'"
                )
        return warnings


def merge_configs(layers: Sequence[ConfigModel]) -> ConfigModel:
    """Merge config layers, later layers winning entry by entry."""
    default_service: Optional[str] = None
    default_prompt: Optional[str] = None
    system_prompts: Dict[str, str] = {}
    services: Dict[str, ServiceConfig] = {}
    sources: List[Path] = []
    for layer in layers:
        if layer.default_service:
            default_service = layer.default_service
        if layer.default_prompt:
            default_prompt = layer.default_prompt
        system_prompts.update(layer.system_prompts)
        services.update(layer.services)
        sources.extend(layer.sources)
    return ConfigModel(
        default_service=default_service,
        default_prompt=default_prompt,
        system_prompts=system_prompts,
        services=services,
        sources=sources,
    )


def load_config_file(path: Path) -> ConfigModel:
    """Parse one YAML config file, raising ConfigError on any problem."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            loaded_data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file {path}: {e}") from e

    if loaded_data is None:
        loaded_data = {}
    if not isinstance(loaded_data, dict):
        raise ConfigError(f"Invalid format in {path}: top level must be a mapping")

    try:
        layer = ConfigModel.model_validate(_drop_nulls(loaded_data))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e
    return layer.model_copy(update={"sources": [path]})


def _drop_nulls(data: Dict[str, Any]) -> Dict[str, Any]:
    # An empty "services:" key parses as None; treat it like an absent key
    return {key: value for key, value in data.items() if value is not None}


class ConfigResolver:
    """Loads and merges config files.

    ``search_paths`` are auto-discovered candidates ordered from lowest to
    highest precedence; absent ones are skipped. ``explicit_path`` is the file
    the user asked for and must exist. It is applied last.
    """

    def __init__(self, search_paths: Sequence[Path], explicit_path: Optional[Path] = None):
        self.search_paths = [Path(p) for p in search_paths]
        self.explicit_path = Path(explicit_path).expanduser() if explicit_path else None

    def load(self) -> ConfigModel:
        layers: List[ConfigModel] = []
        for path in self.search_paths:
            if not path.is_file():
                logger.debug(f"Config file {path} not present, skipping")
                continue
            layers.append(load_config_file(path))
            logger.debug(f"Loaded config: {path}")

        if self.explicit_path is not None:
            if not self.explicit_path.is_file():
                raise ConfigError(f"Config file not found: {self.explicit_path}")
            layers.append(load_config_file(self.explicit_path))
            logger.debug(f"Loaded explicit config: {self.explicit_path}")

        if not layers:
            checked = ", ".join(str(p) for p in self.search_paths) or "no locations"
            raise ConfigError(f"No configuration file found. Checked {checked}")

        config = merge_configs(layers)
        for warning in config.validate_references():
            logger.warning(warning)
        return config


def load_config(explicit_path: Optional[str] = None, settings: Optional[Settings] = None) -> ConfigModel:
    """Resolve the configuration from the standard locations."""
    if explicit_path is None and settings is not None and settings.CONFIG:
        explicit_path = settings.CONFIG
    resolver = ConfigResolver(default_search_paths(), Path(explicit_path) if explicit_path else None)
    return resolver.load()
