"""Configuration classes for process descriptor sets."""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

import yaml

from ecosystem.exceptions import DescriptorError
from ecosystem.roles import role_from_env

DEFAULT_SCRIPT = '/app/dist/main.js'
DEFAULT_NODE_ENV = 'production'
DEFAULT_MAX_MEMORY_RESTART = '1000M'

_MEMORY_RE = re.compile(r'^\s*(\d+)\s*([KMG]?)B?\s*$', re.IGNORECASE)
_MEMORY_UNITS = {'': 1, 'K': 1024, 'M': 1024 ** 2, 'G': 1024 ** 3}

SPEC_KEYS = (
    'name',
    'script',
    'instances',
    'exec_mode',
    'max_memory_restart',
    'watch',
    'env',
)


class ExecMode(Enum):
    """How the process manager runs the instances of an app."""
    FORK = 'fork'
    CLUSTER = 'cluster'


def parse_memory(value: Any) -> int:
    """Convert a memory ceiling such as "1000M" to bytes.

    Args:
        value: Size string with an optional K, M or G suffix, or an int

    Returns:
        Size in bytes

    Raises:
        DescriptorError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise DescriptorError(f"Invalid memory size: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise DescriptorError(f"Memory size must be positive: {value}")
        return value
    match = _MEMORY_RE.match(str(value))
    if not match:
        raise DescriptorError(f"Invalid memory size: {value!r}")
    size = int(match.group(1)) * _MEMORY_UNITS[match.group(2).upper()]
    if size <= 0:
        raise DescriptorError(f"Memory size must be positive: {value!r}")
    return size


def _env_value(name: str, key: str, value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return ''
    if not isinstance(value, (str, int, float)):
        raise DescriptorError(
            f"App '{name}': env value of {key} must be a string, "
            f"got {type(value).__name__}"
        )
    return str(value)


@dataclass
class ProcessSpec:
    """One app the process manager launches."""
    name: str = ''
    script: str = ''
    instances: int = 1
    exec_mode: ExecMode = ExecMode.FORK
    max_memory_restart: str = DEFAULT_MAX_MEMORY_RESTART
    watch: bool = False
    env: Dict[str, str] = None

    def __post_init__(self):
        """Validate and normalize the app."""
        if not self.name or not isinstance(self.name, str):
            raise DescriptorError("App name cannot be empty")
        if not self.script or not isinstance(self.script, str):
            raise DescriptorError(f"App '{self.name}': script cannot be empty")
        if not os.path.isabs(self.script):
            raise DescriptorError(
                f"App '{self.name}': script must be an absolute path, "
                f"got {self.script}"
            )
        if (isinstance(self.instances, bool)
                or not isinstance(self.instances, int)
                or self.instances < 1):
            raise DescriptorError(
                f"App '{self.name}': instances must be a positive integer, "
                f"got {self.instances!r}"
            )

        try:
            self.exec_mode = ExecMode(self.exec_mode)
        except ValueError as e:
            raise DescriptorError(
                f"App '{self.name}': unknown exec_mode {self.exec_mode!r}"
            ) from e

        if isinstance(self.max_memory_restart, int) and not isinstance(
                self.max_memory_restart, bool):
            self.max_memory_restart = str(self.max_memory_restart)
        try:
            parse_memory(self.max_memory_restart)
        except DescriptorError as e:
            raise DescriptorError(f"App '{self.name}': {e}") from e

        if not isinstance(self.watch, bool):
            raise DescriptorError(
                f"App '{self.name}': watch must be a boolean, "
                f"got {self.watch!r}"
            )

        if self.env is None:
            self.env = {}
        if not isinstance(self.env, Mapping):
            raise DescriptorError(
                f"App '{self.name}': env must be a mapping"
            )
        env = {}
        for key, value in self.env.items():
            if not isinstance(key, str) or not key:
                raise DescriptorError(
                    f"App '{self.name}': env keys must be strings, "
                    f"got {key!r}"
                )
            env[key] = _env_value(self.name, key, value)
        self.env = env

        # Role exclusivity is checked here so every loader gets it
        role_from_env(self.env, self.name)

    @property
    def memory_limit_bytes(self) -> int:
        """Memory ceiling in bytes."""
        return parse_memory(self.max_memory_restart)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the process manager's option keys."""
        return {
            'name': self.name,
            'script': self.script,
            'instances': self.instances,
            'exec_mode': self.exec_mode.value,
            'max_memory_restart': self.max_memory_restart,
            'watch': self.watch,
            'env': dict(self.env),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ProcessSpec':
        """Create an app from its serialized mapping.

        Args:
            data: Mapping using the process manager's option keys

        Returns:
            ProcessSpec object

        Raises:
            DescriptorError: If the mapping is invalid
        """
        if not isinstance(data, Mapping):
            raise DescriptorError(
                f"App entry must be a mapping, got {type(data).__name__}"
            )
        unknown = sorted(set(data) - set(SPEC_KEYS))
        if unknown:
            raise DescriptorError(
                f"App '{data.get('name', '')}': unknown keys: "
                f"{', '.join(map(str, unknown))}"
            )
        return cls(**data)


@dataclass
class DescriptorSet:
    """Ordered collection of apps declared in one descriptor file."""
    apps: List[ProcessSpec]

    def __post_init__(self):
        """Validate the descriptor set."""
        if not self.apps:
            raise DescriptorError("Descriptor set must declare at least one app")

        apps = []
        for app in self.apps:
            if isinstance(app, ProcessSpec):
                apps.append(app)
            elif isinstance(app, Mapping):
                apps.append(ProcessSpec.from_dict(app))
            else:
                raise TypeError("App must be a dict or ProcessSpec")
        self.apps = apps

        seen = set()
        for app in self.apps:
            if app.name in seen:
                raise DescriptorError(f"Duplicate app name: {app.name}")
            seen.add(app.name)

        scripts = {app.script for app in self.apps}
        if len(scripts) > 1:
            raise DescriptorError(
                "All apps must share one script, got: "
                f"{', '.join(sorted(scripts))}"
            )

    def __iter__(self) -> Iterator[ProcessSpec]:
        return iter(self.apps)

    def __len__(self) -> int:
        return len(self.apps)

    @property
    def script(self) -> str:
        """Entry point shared by every app."""
        return self.apps[0].script

    def names(self) -> List[str]:
        """Return app names in declaration order."""
        return [app.name for app in self.apps]

    def get(self, name: str) -> ProcessSpec:
        """Return the app with the given name.

        Raises:
            KeyError: If no app has that name
        """
        for app in self.apps:
            if app.name == name:
                return app
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the descriptor file shape."""
        return {'apps': [app.to_dict() for app in self.apps]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'DescriptorSet':
        """Create a descriptor set from its serialized mapping.

        Raises:
            DescriptorError: If the mapping is not of shape {apps: [...]}
        """
        if not isinstance(data, Mapping):
            raise DescriptorError("Descriptor file must contain an object")
        if 'apps' not in data:
            raise DescriptorError("Descriptor file has no 'apps' key")
        extra = sorted(set(data) - {'apps'})
        if extra:
            raise DescriptorError(
                f"Unknown top-level keys: {', '.join(map(str, extra))}"
            )
        apps = data['apps']
        if not isinstance(apps, list):
            raise DescriptorError("'apps' must be a list")
        return cls(apps=list(apps))


@dataclass
class DeploymentConfig:
    """Settings shared by every app of the rendered deployment variants."""
    script: str = DEFAULT_SCRIPT
    node_env: str = DEFAULT_NODE_ENV
    max_memory_restart: str = DEFAULT_MAX_MEMORY_RESTART
    output_dir: str = 'deploy'
    interpreter: str = 'node'

    def __post_init__(self):
        """Validate deployment configuration."""
        if not self.script:
            raise DescriptorError("Script path cannot be empty")
        if not os.path.isabs(self.script):
            raise DescriptorError(
                f"Script must be an absolute path, got {self.script}"
            )
        if not self.node_env:
            raise DescriptorError("NODE_ENV cannot be empty")
        parse_memory(self.max_memory_restart)
        if not self.output_dir:
            raise DescriptorError("Output directory cannot be empty")
        if not self.interpreter:
            raise DescriptorError("Interpreter cannot be empty")

    @classmethod
    def from_yaml(cls, config_path: str) -> 'DeploymentConfig':
        """Load deployment configuration from a YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            DeploymentConfig object

        Raises:
            FileNotFoundError: If config file not found
            DescriptorError: If config file is invalid
        """
        if not os.path.isfile(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise DescriptorError(
                f"Config file must contain a mapping: {config_path}"
            )
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(config_data) - known)
        if unknown:
            raise DescriptorError(
                f"Unknown config keys in {config_path}: {', '.join(unknown)}"
            )
        return cls(**config_data)

    @classmethod
    def from_args_and_config(
        cls, args: 'argparse.Namespace',
        config: Optional['DeploymentConfig'] = None
    ) -> 'DeploymentConfig':
        """Create configuration from command line args and a config file.

        Command line values win over config file values.

        Args:
            args: Command line arguments
            config: Config loaded from YAML, or None for defaults

        Returns:
            Combined configuration
        """
        config = config or cls()
        return cls(
            script=getattr(args, 'script', None) or config.script,
            node_env=getattr(args, 'node_env', None) or config.node_env,
            max_memory_restart=getattr(args, 'max_memory_restart', None)
            or config.max_memory_restart,
            output_dir=getattr(args, 'output_dir', None) or config.output_dir,
            interpreter=getattr(args, 'interpreter', None)
            or config.interpreter,
        )
