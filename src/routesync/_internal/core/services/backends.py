"""
Backend instances can be declared next to the routes or registered by some other
mechanism. BackendSource is the extension point the translator uses to get
instance orders for a route.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from routesync._internal.core.errors import ParseError
from routesync._internal.core.models.orders import AddInstance, Instance
from routesync._internal.core.models.routing import RoutingConfig

DEFAULT_BACKEND_PORT = 80


class BackendSource(ABC):
    @abstractmethod
    def get_instances(self, app_id: str, routing_config: RoutingConfig) -> Iterable[AddInstance]:
        pass


class AuthorityBackendSource(BackendSource):
    """Registers one instance per `host[:port]` entry of the route's `backends`."""

    def get_instances(self, app_id: str, routing_config: RoutingConfig) -> Iterable[AddInstance]:
        # parse all authorities first so that a bad entry does not leave half of them applied
        authorities = [parse_authority(a) for a in routing_config.backends]
        return [
            AddInstance(data=Instance(app_id=app_id, ip_address=host, port=port))
            for host, port in authorities
        ]


def parse_authority(authority: str) -> tuple[str, int]:
    """
    >>> parse_authority("10.0.0.1")
    ('10.0.0.1', 80)
    >>> parse_authority("10.0.0.1:9090")
    ('10.0.0.1', 9090)
    """
    host, sep, port = authority.partition(":")
    if not host:
        raise ParseError("Missing host")
    if not sep:
        return host, DEFAULT_BACKEND_PORT
    if not (port.isascii() and port.isdigit()) or not 0 < int(port) < 2**16:
        raise ParseError(f"Could not parse port '{port}' of backend '{authority}'")
    return host, int(port)
