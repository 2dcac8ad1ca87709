"""Host capacity checks for descriptor sets."""

import logging
from typing import Dict, List

import psutil

from ecosystem.config import DescriptorSet, ExecMode
from ecosystem.exceptions import DescriptorError

logger = logging.getLogger(__name__)


def requested_memory(descriptor_set: DescriptorSet) -> int:
    """Return the bytes all instances may use before being restarted."""
    return sum(app.instances * app.memory_limit_bytes for app in descriptor_set)


def requested_processes(descriptor_set: DescriptorSet) -> int:
    """Return the number of processes a descriptor set starts."""
    return sum(app.instances for app in descriptor_set)


def get_host_metrics() -> Dict[str, float]:
    """Get host totals.

    Returns:
        Dictionary with total memory in bytes and logical CPU count
    """
    return {
        'memory_total': psutil.virtual_memory().total,
        'cpu_count': psutil.cpu_count() or 1,
    }


def check_host(descriptor_set: DescriptorSet,
               memory_percent: float = 80.0) -> List[str]:
    """Compare a descriptor set against the current host.

    Args:
        descriptor_set: Descriptor set to check
        memory_percent: Share of host memory the memory ceilings may add up to

    Returns:
        List of warnings, empty when the host fits

    Raises:
        DescriptorError: If memory_percent is not in (0, 100]
    """
    if not 0 < memory_percent <= 100:
        raise DescriptorError("Memory percent must be between 0 and 100")

    metrics = get_host_metrics()
    warnings = []

    budget = metrics['memory_total'] * memory_percent / 100
    memory = requested_memory(descriptor_set)
    if memory > budget:
        warnings.append(
            f"Memory ceilings add up to {memory / 1024 ** 2:.0f}M, above "
            f"{memory_percent:.0f}% of host memory "
            f"({metrics['memory_total'] / 1024 ** 2:.0f}M)"
        )

    for app in descriptor_set:
        if (app.exec_mode is ExecMode.CLUSTER
                and app.instances > metrics['cpu_count']):
            warnings.append(
                f"App '{app.name}' runs {app.instances} cluster instances on "
                f"{metrics['cpu_count']} CPUs"
            )

    for warning in warnings:
        logger.warning("%s", warning)
    return warnings
