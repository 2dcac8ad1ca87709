"""Process descriptor package."""

from .config import DeploymentConfig, DescriptorSet, ExecMode, ProcessSpec
from .exceptions import DescriptorError
from .formats import dump, dumps, load, loads
from .roles import Role, role_of

__all__ = [
    'DeploymentConfig',
    'DescriptorError',
    'DescriptorSet',
    'ExecMode',
    'ProcessSpec',
    'Role',
    'dump',
    'dumps',
    'load',
    'loads',
    'role_of',
]
