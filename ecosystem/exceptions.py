"""Exceptions raised while loading and validating descriptor sets."""


class DescriptorError(ValueError):
    """Raised when a descriptor set or one of its apps is invalid."""
