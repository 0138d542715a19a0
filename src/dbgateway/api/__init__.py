from .app import create_app
from .registry import ConflictPolicy, EndpointRegistry, RouteMatch, extract_parameters
from .service import DatabaseService

__all__ = [
    "create_app",
    "ConflictPolicy",
    "EndpointRegistry",
    "RouteMatch",
    "extract_parameters",
    "DatabaseService",
]
