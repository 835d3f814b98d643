"""
Translation of the declarative applications file into a ConfigState.

Every route is turned into an ordered sequence of orders which are applied to
an empty state one at a time, so later orders may rely on the items created
by earlier ones.
"""

import tomllib
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from routesync._internal.core.errors import (
    DocumentError,
    FileLoadError,
    InvalidPathError,
    MissingItemError,
)
from routesync._internal.core.models.orders import (
    AddApplication,
    AddCertificate,
    AddCertificateData,
    AddHttpFront,
    AddHttpsFront,
    AnyOrder,
    Application,
    CertificateAndKey,
    HttpFront,
    HttpsFront,
)
from routesync._internal.core.models.routing import ApplicationsConfig, Frontend, RoutingConfig
from routesync._internal.core.models.state import ConfigState
from routesync._internal.core.services.backends import AuthorityBackendSource, BackendSource
from routesync._internal.core.services.certificates import (
    calculate_fingerprint,
    split_certificate_chain,
)
from routesync._internal.utils.logging import get_logger

logger = get_logger(__name__)

_applications_adapter = TypeAdapter(ApplicationsConfig)
_DEFAULT_BACKEND_SOURCE = AuthorityBackendSource()


class DocumentFormat(str, Enum):
    TOML = "toml"
    YAML = "yaml"

    @classmethod
    def from_path(cls, path: Path) -> "DocumentFormat":
        if path.suffix.lower() in (".yml", ".yaml"):
            return cls.YAML
        return cls.TOML


def parse_config_file(
    path: Path,
    backend_source: Optional[BackendSource] = _DEFAULT_BACKEND_SOURCE,
) -> ConfigState:
    path = Path(path)
    if not path.name or path.is_dir():
        raise InvalidPathError(path)
    data = load_file(path)
    return parse_config(data, DocumentFormat.from_path(path), backend_source=backend_source)


def parse_config(
    data: str,
    fmt: DocumentFormat = DocumentFormat.TOML,
    backend_source: Optional[BackendSource] = _DEFAULT_BACKEND_SOURCE,
) -> ConfigState:
    app_map = load_applications(data, fmt)
    state = ConfigState()
    for order in iter_orders(app_map, backend_source):
        state.apply(order)
    logger.debug("Translated applications config: %s", state.fmt())
    return state


def load_applications(data: str, fmt: DocumentFormat = DocumentFormat.TOML) -> ApplicationsConfig:
    try:
        if fmt == DocumentFormat.YAML:
            raw = yaml.safe_load(data) or {}
        else:
            raw = tomllib.loads(data)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise DocumentError(f"Invalid {fmt.value.upper()} document: {e}") from e
    try:
        return _applications_adapter.validate_python(raw)
    except ValidationError as e:
        raise DocumentError(f"Invalid applications config:\n{e}") from e


def iter_orders(
    app_map: ApplicationsConfig,
    backend_source: Optional[BackendSource] = _DEFAULT_BACKEND_SOURCE,
) -> Iterator[AnyOrder]:
    """
    Yields orders for every route of every application, in file order.
    Generation is lazy, so a consumer applying each order before asking for the next
    one gets a state that already contains everything yielded so far.
    """
    for app_id, routing_configs in app_map.items():
        for routing_config in routing_configs:
            yield from _iter_route_orders(app_id, routing_config, backend_source)


def _iter_route_orders(
    app_id: str,
    routing_config: RoutingConfig,
    backend_source: Optional[BackendSource],
) -> Iterator[AnyOrder]:
    yield AddApplication(
        data=Application(
            app_id=app_id,
            sticky_session=routing_config.sticky_session,
            https_redirect=routing_config.https_redirect,
            proxy_protocol=routing_config.proxy_protocol,
        )
    )

    if Frontend.HTTP in routing_config.frontends:
        yield AddHttpFront(
            data=HttpFront(
                app_id=app_id,
                hostname=routing_config.hostname,
                path_begin=routing_config.path_begin,
            )
        )

    if Frontend.HTTPS in routing_config.frontends:
        certificate_and_key = load_certificate_and_key(routing_config)
        fingerprint = calculate_fingerprint(certificate_and_key.certificate.encode())
        yield AddCertificate(
            data=AddCertificateData(
                certificate=certificate_and_key,
                fingerprint=fingerprint,
                names=(routing_config.hostname,),
            )
        )
        yield AddHttpsFront(
            data=HttpsFront(
                app_id=app_id,
                hostname=routing_config.hostname,
                path_begin=routing_config.path_begin,
                fingerprint=fingerprint,
            )
        )

    if backend_source is not None:
        yield from backend_source.get_instances(app_id, routing_config)


def load_certificate_and_key(routing_config: RoutingConfig) -> CertificateAndKey:
    if routing_config.certificate is None:
        raise MissingItemError("Certificate")
    certificate = load_file(routing_config.certificate)
    if routing_config.key is None:
        raise MissingItemError("Key")
    key = load_file(routing_config.key)
    certificate_chain: list[str] = []
    if routing_config.certificate_chain is not None:
        certificate_chain = split_certificate_chain(load_file(routing_config.certificate_chain))
    return CertificateAndKey(
        certificate=certificate,
        key=key,
        certificate_chain=tuple(certificate_chain),
    )


def load_file(path: Union[str, Path]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise FileLoadError(path) from e
