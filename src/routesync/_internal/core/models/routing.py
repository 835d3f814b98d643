"""Models of the declarative applications file."""

from enum import Enum
from typing import Optional

from pydantic import Field
from typing_extensions import Annotated

from routesync._internal.core.models.common import CoreModel


class Frontend(str, Enum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"


class ProxyProtocol(str, Enum):
    EXPECT_HEADER = "EXPECT_HEADER"
    SEND_HEADER = "SEND_HEADER"
    RELAY_HEADER = "RELAY_HEADER"


class RoutingConfig(CoreModel):
    hostname: Annotated[str, Field(min_length=1)]
    path_begin: str = "/"
    frontends: set[Frontend] = set()
    backends: list[str] = []
    sticky_session: bool = False
    https_redirect: bool = False
    certificate: Optional[str] = None
    key: Optional[str] = None
    certificate_chain: Optional[str] = None
    proxy_protocol: Optional[ProxyProtocol] = None


# app_id -> routes of the application, in file order
ApplicationsConfig = dict[str, list[RoutingConfig]]
