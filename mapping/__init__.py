"""Identity and contract mapping registry."""

from mapping.registry import MappingRegistry, MappingRegistryConfig, mapping_hash

__all__ = ["MappingRegistry", "MappingRegistryConfig", "mapping_hash"]
