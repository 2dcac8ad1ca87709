"""Expansion of a descriptor set into the processes it asks for.

Nothing here starts a process. The plan lists, per instance, the command and
environment the process manager would use, which is what `plan` prints and
what tests compare against.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from ecosystem.config import DescriptorSet, ProcessSpec
from ecosystem.roles import Role, role_of

logger = logging.getLogger(__name__)

INSTANCE_VAR = 'NODE_APP_INSTANCE'


@dataclass
class LaunchPlan:
    """One OS process of an app."""
    spec: ProcessSpec
    instance_id: int
    command: List[str]
    env: Dict[str, str]

    @property
    def role(self) -> Role:
        """Role selected by the environment."""
        return role_of(self.spec)

    def describe(self) -> str:
        """Return a one-line summary."""
        return (
            f"{self.spec.name}[{self.instance_id}] "
            f"({self.spec.exec_mode.value}, {self.role.value}): "
            f"{' '.join(self.command)}"
        )


def build_command(spec: ProcessSpec, interpreter: str = 'node') -> List[str]:
    """Build the command for one app.

    Args:
        spec: App to run
        interpreter: Runtime that executes the script

    Returns:
        List of command parts
    """
    return [interpreter, spec.script]


def build_environment(spec: ProcessSpec,
                      instance_id: int,
                      base_env: Optional[Mapping[str, str]] = None
                      ) -> Dict[str, str]:
    """Build the environment of one instance.

    Args:
        spec: App the instance belongs to
        instance_id: Index of the instance, starting at 0
        base_env: Environment inherited from the caller

    Returns:
        base_env overlaid with the app's env and the instance index
    """
    env = dict(base_env or {})
    env.update(spec.env)
    env[INSTANCE_VAR] = str(instance_id)
    return env


def plan(descriptor_set: DescriptorSet,
         base_env: Optional[Mapping[str, str]] = None,
         interpreter: str = 'node') -> List[LaunchPlan]:
    """Expand every app into its instances.

    Args:
        descriptor_set: Descriptor set to expand
        base_env: Environment inherited by every instance
        interpreter: Runtime that executes the script

    Returns:
        Launch plans, apps in declaration order
    """
    plans = []
    for spec in descriptor_set:
        command = build_command(spec, interpreter)
        for instance_id in range(spec.instances):
            plans.append(
                LaunchPlan(
                    spec=spec,
                    instance_id=instance_id,
                    command=list(command),
                    env=build_environment(spec, instance_id, base_env),
                )
            )
        logger.debug(
            "Planned %d %s instance(s) of %s", spec.instances,
            spec.exec_mode.value, spec.name
        )
    return plans
