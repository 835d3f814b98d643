"""
Orders are atomic proxy configuration mutations. They are sent to the proxy as is
and applied to ConfigState to keep the local mirror in sync with the proxy.
"""

from typing import Literal, Optional, Union

from pydantic import Field, TypeAdapter
from typing_extensions import Annotated

from routesync._internal.core.models.common import ImmutableModel
from routesync._internal.core.models.routing import ProxyProtocol

# lowercase hex SHA-256 of the DER-encoded certificate
CertFingerprint = Annotated[str, Field(pattern=r"^[0-9a-f]{64}$")]


class Application(ImmutableModel):
    app_id: str
    sticky_session: bool = False
    https_redirect: bool = False
    proxy_protocol: Optional[ProxyProtocol] = None


class CertificateAndKey(ImmutableModel):
    certificate: str
    key: str
    certificate_chain: tuple[str, ...] = ()


class HttpFront(ImmutableModel):
    app_id: str
    hostname: str
    path_begin: str = "/"


class HttpsFront(ImmutableModel):
    app_id: str
    hostname: str
    path_begin: str = "/"
    fingerprint: CertFingerprint


class Instance(ImmutableModel):
    app_id: str
    ip_address: str
    port: int

    @property
    def authority(self) -> str:
        return f"{self.ip_address}:{self.port}"


class AddCertificateData(ImmutableModel):
    certificate: CertificateAndKey
    fingerprint: CertFingerprint
    names: tuple[str, ...] = ()


class ReplaceCertificateData(ImmutableModel):
    certificate: CertificateAndKey
    fingerprint: CertFingerprint
    old_fingerprint: CertFingerprint
    names: tuple[str, ...] = ()


class AddApplication(ImmutableModel):
    type: Literal["ADD_APPLICATION"] = "ADD_APPLICATION"
    data: Application


class RemoveApplication(ImmutableModel):
    type: Literal["REMOVE_APPLICATION"] = "REMOVE_APPLICATION"
    data: str


class AddCertificate(ImmutableModel):
    type: Literal["ADD_CERTIFICATE"] = "ADD_CERTIFICATE"
    data: AddCertificateData


class RemoveCertificate(ImmutableModel):
    type: Literal["REMOVE_CERTIFICATE"] = "REMOVE_CERTIFICATE"
    data: CertFingerprint


class ReplaceCertificate(ImmutableModel):
    type: Literal["REPLACE_CERTIFICATE"] = "REPLACE_CERTIFICATE"
    data: ReplaceCertificateData


class AddHttpFront(ImmutableModel):
    type: Literal["ADD_HTTP_FRONT"] = "ADD_HTTP_FRONT"
    data: HttpFront


class RemoveHttpFront(ImmutableModel):
    type: Literal["REMOVE_HTTP_FRONT"] = "REMOVE_HTTP_FRONT"
    data: HttpFront


class AddHttpsFront(ImmutableModel):
    type: Literal["ADD_HTTPS_FRONT"] = "ADD_HTTPS_FRONT"
    data: HttpsFront


class RemoveHttpsFront(ImmutableModel):
    type: Literal["REMOVE_HTTPS_FRONT"] = "REMOVE_HTTPS_FRONT"
    data: HttpsFront


class AddInstance(ImmutableModel):
    type: Literal["ADD_INSTANCE"] = "ADD_INSTANCE"
    data: Instance


class RemoveInstance(ImmutableModel):
    type: Literal["REMOVE_INSTANCE"] = "REMOVE_INSTANCE"
    data: Instance


AnyOrder = Annotated[
    Union[
        AddApplication,
        RemoveApplication,
        AddCertificate,
        RemoveCertificate,
        ReplaceCertificate,
        AddHttpFront,
        RemoveHttpFront,
        AddHttpsFront,
        RemoveHttpsFront,
        AddInstance,
        RemoveInstance,
    ],
    Field(discriminator="type"),
]

order_adapter = TypeAdapter(AnyOrder)


def parse_order(data: dict) -> AnyOrder:
    return order_adapter.validate_python(data)
