from .generator import APIGenerator, endpoints_for_table, metadata_endpoints
from .models import APIGeneratorConfig, EndpointDescriptor

__all__ = [
    "APIGenerator",
    "APIGeneratorConfig",
    "EndpointDescriptor",
    "endpoints_for_table",
    "metadata_endpoints",
]
