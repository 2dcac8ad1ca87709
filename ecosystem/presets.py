"""Deployment variants shipped under deploy/."""

import logging
from typing import Callable, Dict, List, Optional

from ecosystem.config import DeploymentConfig, DescriptorSet, ExecMode, ProcessSpec
from ecosystem.exceptions import DescriptorError
from ecosystem.formats import JS
from ecosystem.roles import (
    IS_BULLMQ_WORKER,
    IS_CRON_WORKER,
    IS_TEMPORAL_WORKER,
    Role,
    role_env,
)

logger = logging.getLogger(__name__)

API = 'api'
CRON = 'cron'
WORKER = 'worker'
BULLMQ = 'bullmq'
COMBINED = 'combined'

VARIANTS = (API, CRON, WORKER, BULLMQ, COMBINED)

# Flags written by the split deployment. The BullMQ worker is the only one
# that also writes IS_BULLMQ_WORKER.
_SPLIT_FLAGS = (IS_CRON_WORKER, IS_TEMPORAL_WORKER)


def make_app(config: DeploymentConfig,
             name: str,
             role: Role,
             *,
             instances: int = 1,
             exec_mode: ExecMode = ExecMode.FORK,
             flags=_SPLIT_FLAGS) -> ProcessSpec:
    """Build one app running the shared script in the given role.

    Args:
        config: Deployment settings
        name: App name
        role: Role selected through the environment
        instances: Number of processes
        exec_mode: Fork or cluster
        flags: Role flags written to the environment

    Returns:
        ProcessSpec object
    """
    return ProcessSpec(
        name=name,
        script=config.script,
        instances=instances,
        exec_mode=exec_mode,
        max_memory_restart=config.max_memory_restart,
        watch=False,
        env=role_env(role, config.node_env, flags),
    )


def _api(config: DeploymentConfig) -> List[ProcessSpec]:
    return [
        make_app(config, 'api_service', Role.API,
                 instances=2, exec_mode=ExecMode.CLUSTER)
    ]


def _cron(config: DeploymentConfig) -> List[ProcessSpec]:
    return [make_app(config, 'cron_worker', Role.CRON)]


def _worker(config: DeploymentConfig) -> List[ProcessSpec]:
    return [
        make_app(config, 'temporal_worker', Role.TEMPORAL,
                 exec_mode=ExecMode.CLUSTER)
    ]


def _bullmq(config: DeploymentConfig) -> List[ProcessSpec]:
    return [
        make_app(config, 'bullmq_worker', Role.BULLMQ,
                 exec_mode=ExecMode.CLUSTER,
                 flags=_SPLIT_FLAGS + (IS_BULLMQ_WORKER,))
    ]


def _combined(config: DeploymentConfig) -> List[ProcessSpec]:
    return [
        make_app(config, 'api_service', Role.API,
                 exec_mode=ExecMode.CLUSTER, flags=(IS_CRON_WORKER,)),
        make_app(config, 'cron', Role.CRON, flags=(IS_CRON_WORKER,)),
        make_app(config, 'temporal', Role.TEMPORAL),
    ]


_BUILDERS: Dict[str, Callable[[DeploymentConfig], List[ProcessSpec]]] = {
    API: _api,
    CRON: _cron,
    WORKER: _worker,
    BULLMQ: _bullmq,
    COMBINED: _combined,
}


def build(variant: str,
          config: Optional[DeploymentConfig] = None) -> DescriptorSet:
    """Build the descriptor set of a deployment variant.

    Args:
        variant: One of VARIANTS
        config: Deployment settings, defaults when None

    Returns:
        DescriptorSet object

    Raises:
        DescriptorError: If the variant is unknown
    """
    if variant not in _BUILDERS:
        raise DescriptorError(
            f"Unknown variant '{variant}', expected one of: "
            f"{', '.join(VARIANTS)}"
        )
    config = config or DeploymentConfig()
    descriptor_set = DescriptorSet(apps=_BUILDERS[variant](config))
    logger.debug("Built variant %s: %s", variant,
                 ', '.join(descriptor_set.names()))
    return descriptor_set


def default_filename(variant: str, fmt: str = JS) -> str:
    """Return the file name a variant is rendered to."""
    if variant == COMBINED:
        return f'ecosystem.config.{fmt}'
    return f'ecosystem.{variant}.config.{fmt}'
