from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import Lock
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dbgateway.common.errors import ConfigurationError, RouteConflictError
from dbgateway.common.logger import get_logger
from dbgateway.generation.models import EndpointDescriptor

logger = get_logger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

RouteKey = Tuple[str, str]


class ConflictPolicy(str, Enum):
    """What happens when a route with the same method and shape is registered again."""
    REPLACE = "replace"
    REJECT = "reject"


def _split(path: str) -> Tuple[str, ...]:
    return tuple(segment for segment in path.strip("/").split("/") if segment)


def route_shape(method: str, path: str) -> RouteKey:
    """Conflict key of a route: parameter names are erased.

    `/users/:id` and `/users/:user_id` match the same requests, so both
    map to ("GET", "/users/:").
    """
    segments = (":" if segment.startswith(":") else segment for segment in _split(path))
    return (method.upper(), "/" + "/".join(segments))


@dataclass(frozen=True)
class RegisteredEndpoint:
    """Immutable handler record for one route."""
    descriptor: EndpointDescriptor
    segments: Tuple[str, ...]
    sequence: int

    @property
    def literal_count(self) -> int:
        return sum(1 for segment in self.segments if not segment.startswith(":"))

    def match(self, request_segments: Tuple[str, ...]) -> Optional[Dict[str, str]]:
        if len(request_segments) != len(self.segments):
            return None
        bound: Dict[str, str] = {}
        for template, value in zip(self.segments, request_segments):
            if template.startswith(":"):
                bound[template[1:]] = value
            elif template != value:
                return None
        return bound


@dataclass(frozen=True)
class RouteMatch:
    endpoint: RegisteredEndpoint
    path_params: Mapping[str, str]

    @property
    def descriptor(self) -> EndpointDescriptor:
        return self.endpoint.descriptor


class EndpointRegistry:
    """
    Lookup table from route shape to immutable endpoint records.

    Writers swap in a new table under a lock; readers resolve against
    whichever table is current, so registration never blocks requests.
    """

    def __init__(self, policy: ConflictPolicy = ConflictPolicy.REPLACE):
        self.policy = ConflictPolicy(policy)
        self._routes: Mapping[RouteKey, RegisteredEndpoint] = MappingProxyType({})
        self._lock = Lock()
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, key: RouteKey) -> bool:
        return route_shape(*key) in self._routes

    def register(self, descriptors: Iterable[EndpointDescriptor]) -> List[RouteKey]:
        """Installs descriptors as live routes.

        Two routes conflict when they share a method and a shape, whatever
        their parameter names. The batch is applied atomically: under the
        reject policy a single conflict leaves the registry untouched. A
        descriptor equal to the one already installed is kept as is.

        Returns:
            The (method, path) keys of descriptors that replaced a route.

        Raises:
            ConfigurationError: If a descriptor uses an unsupported method.
            RouteConflictError: If a shape is taken and the policy is reject.
        """
        descriptors = [d.model_copy(deep=True) for d in descriptors]
        for descriptor in descriptors:
            if descriptor.method.upper() not in SUPPORTED_METHODS:
                raise ConfigurationError(f"Unsupported HTTP method: {descriptor.method}")

        with self._lock:
            routes = dict(self._routes)
            replaced: List[RouteKey] = []
            displaced: List[Tuple[EndpointDescriptor, EndpointDescriptor]] = []
            for descriptor in descriptors:
                shape = route_shape(descriptor.method, descriptor.path)
                existing = routes.get(shape)
                if existing is not None:
                    # Re-registering an identical descriptor is not a conflict.
                    if existing.descriptor == descriptor:
                        continue
                    old = existing.descriptor
                    if self.policy == ConflictPolicy.REJECT:
                        raise RouteConflictError(
                            f"Route {descriptor.method.upper()} {descriptor.path} conflicts with "
                            f"registered route {old.method.upper()} {old.path}"
                        )
                    if descriptor.key not in replaced:
                        replaced.append(descriptor.key)
                    displaced.append((old, descriptor))
                self._sequence += 1
                routes[shape] = RegisteredEndpoint(
                    descriptor=descriptor,
                    segments=_split(descriptor.path),
                    sequence=self._sequence,
                )
            self._routes = MappingProxyType(routes)

        for old, new in displaced:
            logger.info(f"Replaced route {old.method.upper()} {old.path} with {new.method.upper()} {new.path}")
        logger.info(f"Registered {len(descriptors)} endpoints ({len(replaced)} replaced)")
        return replaced

    def unregister(self, method: str, path: str) -> bool:
        shape = route_shape(method, path)
        with self._lock:
            if shape not in self._routes:
                return False
            routes = dict(self._routes)
            del routes[shape]
            self._routes = MappingProxyType(routes)
        return True

    def get(self, method: str, path: str) -> Optional[EndpointDescriptor]:
        endpoint = self._routes.get(route_shape(method, path))
        return endpoint.descriptor if endpoint else None

    def descriptors(self) -> List[EndpointDescriptor]:
        endpoints = sorted(self._routes.values(), key=lambda e: e.sequence)
        return [e.descriptor for e in endpoints]

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """Finds the route for a concrete request path.

        Literal segments outrank `:param` segments; ties go to the
        lexicographically smaller template.
        """
        method = method.upper()
        request_segments = _split(path)
        candidates = []
        for (route_method, _), endpoint in self._routes.items():
            if route_method != method:
                continue
            bound = endpoint.match(request_segments)
            if bound is not None:
                candidates.append((-endpoint.literal_count, endpoint.descriptor.path, endpoint, bound))
        if not candidates:
            return None
        candidates.sort(key=lambda c: (c[0], c[1]))
        _, _, endpoint, bound = candidates[0]
        return RouteMatch(endpoint=endpoint, path_params=MappingProxyType(bound))


def extract_parameters(
    match: RouteMatch,
    query_params: Optional[Mapping[str, Any]] = None,
    body: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Builds the bind values for one invocation.

    Precedence: path parameters declared by the descriptor, then query
    string, then JSON body fields, then descriptor defaults. Earlier
    sources are never overridden.
    """
    descriptor = match.descriptor
    params: Dict[str, Any] = {
        name: value for name, value in match.path_params.items() if name in descriptor.parameters
    }
    for source in (query_params or {}, body or {}, descriptor.defaults):
        for key, value in source.items():
            params.setdefault(key, value)
    return params
