"""Role flags that select what the shared application does at startup."""

from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from ecosystem.exceptions import DescriptorError

NODE_ENV = 'NODE_ENV'
IS_CRON_WORKER = 'IS_CRON_WORKER'
IS_TEMPORAL_WORKER = 'IS_TEMPORAL_WORKER'
IS_BULLMQ_WORKER = 'IS_BULLMQ_WORKER'

ROLE_FLAGS = (IS_CRON_WORKER, IS_TEMPORAL_WORKER, IS_BULLMQ_WORKER)


class Role(Enum):
    """Runtime role of one app of a descriptor set."""
    API = 'api'
    CRON = 'cron'
    TEMPORAL = 'temporal'
    BULLMQ = 'bullmq'

    @property
    def flag(self) -> Optional[str]:
        """Environment flag that turns this role on, None for the API role."""
        return _FLAG_BY_ROLE.get(self)


_FLAG_BY_ROLE = {
    Role.CRON: IS_CRON_WORKER,
    Role.TEMPORAL: IS_TEMPORAL_WORKER,
    Role.BULLMQ: IS_BULLMQ_WORKER,
}
_ROLE_BY_FLAG = {flag: role for role, flag in _FLAG_BY_ROLE.items()}


def is_true(value: Optional[str]) -> bool:
    """Return whether an environment value spells boolean true."""
    return value is not None and str(value).strip().lower() == 'true'


def enabled_flags(env: Mapping[str, str]) -> List[str]:
    """Return the role flags set to "true" in an environment mapping.

    Args:
        env: Environment variables of an app

    Returns:
        Enabled flags, in ROLE_FLAGS order
    """
    return [flag for flag in ROLE_FLAGS if is_true(env.get(flag))]


def role_from_env(env: Mapping[str, str], name: str = '') -> Role:
    """Resolve the role an environment selects.

    Args:
        env: Environment variables of an app
        name: App name used in error messages

    Returns:
        Role.API when no worker flag is enabled, else the worker role

    Raises:
        DescriptorError: If more than one worker flag is enabled
    """
    flags = enabled_flags(env)
    if not flags:
        return Role.API
    if len(flags) > 1:
        raise DescriptorError(
            f"App '{name}' enables more than one role flag: "
            f"{', '.join(flags)}"
        )
    return _ROLE_BY_FLAG[flags[0]]


def role_of(spec) -> Role:
    """Return the role of a ProcessSpec."""
    return role_from_env(spec.env, spec.name)


def role_env(role: Role,
             node_env: str = 'production',
             flags: Optional[Sequence[str]] = None) -> Dict[str, str]:
    """Build the environment mapping for a role.

    Args:
        role: Role the app should assume
        node_env: Deployment tier written to NODE_ENV
        flags: Role flags to write explicitly. Defaults to all of them.

    Returns:
        NODE_ENV followed by each flag as "true" or "false"

    Raises:
        DescriptorError: If the role's own flag is not among the flags
    """
    if flags is None:
        flags = ROLE_FLAGS
    unknown = [flag for flag in flags if flag not in ROLE_FLAGS]
    if unknown:
        raise DescriptorError(f"Unknown role flags: {', '.join(unknown)}")
    if role.flag is not None and role.flag not in flags:
        raise DescriptorError(
            f"Role {role.value} needs flag {role.flag} to be written"
        )

    env = {NODE_ENV: node_env}
    for flag in flags:
        env[flag] = 'true' if flag == role.flag else 'false'
    return env
