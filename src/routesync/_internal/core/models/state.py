from itertools import chain
from typing import Iterable, TypeVar

from pydantic import BaseModel

from routesync._internal.core.errors import InvalidOrderError
from routesync._internal.core.models.common import ImmutableModel
from routesync._internal.core.models.orders import (
    AddApplication,
    AddCertificate,
    AddCertificateData,
    AddHttpFront,
    AddHttpsFront,
    AddInstance,
    AnyOrder,
    Application,
    CertificateAndKey,
    HttpFront,
    HttpsFront,
    Instance,
    RemoveApplication,
    RemoveCertificate,
    RemoveHttpFront,
    RemoveHttpsFront,
    RemoveInstance,
    ReplaceCertificate,
)

T = TypeVar("T", HttpFront, HttpsFront, Instance)


class CertificateEntry(ImmutableModel):
    certificate: CertificateAndKey
    names: tuple[str, ...] = ()


class ConfigState(BaseModel):
    """
    ConfigState is a snapshot of the proxy routing configuration. It is built by applying
    orders one by one and can compute the orders that turn it into another state.
    The same model is used to parse the proxy's state dump.
    """

    applications: dict[str, Application] = {}
    certificates: dict[str, CertificateEntry] = {}
    http_fronts: dict[str, list[HttpFront]] = {}
    https_fronts: dict[str, list[HttpsFront]] = {}
    instances: dict[str, list[Instance]] = {}

    def apply(self, order: AnyOrder) -> None:
        """
        Applies `order` to the state. Preconditions are checked before any mutation, so
        the state is left untouched if InvalidOrderError is raised. Adding an existing
        item and removing a missing one are no-ops.
        """
        if isinstance(order, AddApplication):
            self.applications[order.data.app_id] = order.data
        elif isinstance(order, RemoveApplication):
            self._remove_application(order.data)
        elif isinstance(order, AddCertificate):
            self._add_certificate(order.data)
        elif isinstance(order, RemoveCertificate):
            self._remove_certificate(order.data)
        elif isinstance(order, ReplaceCertificate):
            self._replace_certificate(order)
        elif isinstance(order, AddHttpFront):
            self._require_application(order.data.app_id, order)
            _add_item(self.http_fronts, order.data)
        elif isinstance(order, RemoveHttpFront):
            _remove_item(self.http_fronts, order.data)
        elif isinstance(order, AddHttpsFront):
            self._require_application(order.data.app_id, order)
            if order.data.fingerprint not in self.certificates:
                raise InvalidOrderError(
                    f"Cannot apply {order.type}: certificate {order.data.fingerprint} is unknown"
                )
            _add_item(self.https_fronts, order.data)
        elif isinstance(order, RemoveHttpsFront):
            _remove_item(self.https_fronts, order.data)
        elif isinstance(order, AddInstance):
            self._require_application(order.data.app_id, order)
            _add_item(self.instances, order.data)
        elif isinstance(order, RemoveInstance):
            _remove_item(self.instances, order.data)
        else:
            raise InvalidOrderError(f"Unknown order {order!r}")

    def diff(self, other: "ConfigState") -> list[AnyOrder]:
        """
        Returns orders that turn this state into `other`. Additions go first so that
        every order only references items created by earlier orders, removals go last
        in reverse dependency order.
        """
        orders: list[AnyOrder] = []
        for app_id, app in other.applications.items():
            if self.applications.get(app_id) != app:
                orders.append(AddApplication(data=app))
        for fingerprint, entry in other.certificates.items():
            if fingerprint not in self.certificates:
                orders.append(
                    AddCertificate(
                        data=AddCertificateData(
                            certificate=entry.certificate,
                            fingerprint=fingerprint,
                            names=entry.names,
                        )
                    )
                )
        orders += [AddHttpFront(data=f) for f in _missing(self.http_fronts, other.http_fronts)]
        orders += [AddHttpsFront(data=f) for f in _missing(self.https_fronts, other.https_fronts)]
        orders += [AddInstance(data=i) for i in _missing(self.instances, other.instances)]
        orders += [RemoveHttpFront(data=f) for f in _missing(other.http_fronts, self.http_fronts)]
        orders += [
            RemoveHttpsFront(data=f) for f in _missing(other.https_fronts, self.https_fronts)
        ]
        orders += [RemoveInstance(data=i) for i in _missing(other.instances, self.instances)]
        orders += [
            RemoveCertificate(data=fingerprint)
            for fingerprint in self.certificates
            if fingerprint not in other.certificates
        ]
        orders += [
            RemoveApplication(data=app_id)
            for app_id in self.applications
            if app_id not in other.applications
        ]
        return orders

    def with_instances_of(self, other: "ConfigState") -> "ConfigState":
        """
        Returns a copy of this state with backend instances taken from `other`.
        Instances of applications unknown to this state are dropped.
        """
        state = self.model_copy(deep=True)
        state.instances = {
            app_id: list(instances)
            for app_id, instances in other.instances.items()
            if app_id in state.applications and instances
        }
        return state

    def fmt(self) -> str:
        return (
            f"{len(self.applications)} application(s),"
            f" {len(self.certificates)} certificate(s),"
            f" {_count(self.http_fronts)} HTTP front(s),"
            f" {_count(self.https_fronts)} HTTPS front(s),"
            f" {_count(self.instances)} instance(s)"
        )

    def _require_application(self, app_id: str, order: AnyOrder) -> None:
        if app_id not in self.applications:
            raise InvalidOrderError(f"Cannot apply {order.type}: application {app_id} is unknown")

    def _remove_application(self, app_id: str) -> None:
        if app_id not in self.applications:
            return
        if self.http_fronts.get(app_id) or self.https_fronts.get(app_id):
            raise InvalidOrderError(f"Cannot remove application {app_id}: it still has fronts")
        if self.instances.get(app_id):
            raise InvalidOrderError(f"Cannot remove application {app_id}: it still has instances")
        del self.applications[app_id]

    def _add_certificate(self, data: AddCertificateData) -> None:
        entry = self.certificates.get(data.fingerprint)
        if entry is None:
            self.certificates[data.fingerprint] = CertificateEntry(
                certificate=data.certificate, names=data.names
            )
            return
        names = entry.names + tuple(n for n in data.names if n not in entry.names)
        self.certificates[data.fingerprint] = CertificateEntry(
            certificate=entry.certificate, names=names
        )

    def _remove_certificate(self, fingerprint: str) -> None:
        if fingerprint not in self.certificates:
            return
        for front in chain.from_iterable(self.https_fronts.values()):
            if front.fingerprint == fingerprint:
                raise InvalidOrderError(
                    f"Cannot remove certificate {fingerprint}: it is used by {front.hostname}"
                )
        del self.certificates[fingerprint]

    def _replace_certificate(self, order: ReplaceCertificate) -> None:
        data = order.data
        old_entry = self.certificates.get(data.old_fingerprint)
        if old_entry is None:
            raise InvalidOrderError(
                f"Cannot apply {order.type}: certificate {data.old_fingerprint} is unknown"
            )
        del self.certificates[data.old_fingerprint]
        self.certificates[data.fingerprint] = CertificateEntry(
            certificate=data.certificate, names=data.names or old_entry.names
        )
        for app_id, fronts in self.https_fronts.items():
            replaced = []
            for front in fronts:
                if front.fingerprint == data.old_fingerprint:
                    front = front.model_copy(update={"fingerprint": data.fingerprint})
                if front not in replaced:
                    replaced.append(front)
            self.https_fronts[app_id] = replaced


def _add_item(items: dict[str, list[T]], item: T) -> None:
    app_items = items.setdefault(item.app_id, [])
    if item not in app_items:
        app_items.append(item)


def _remove_item(items: dict[str, list[T]], item: T) -> None:
    app_items = items.get(item.app_id, [])
    if item in app_items:
        app_items.remove(item)
    if not app_items:
        items.pop(item.app_id, None)


def _missing(present: dict[str, list[T]], wanted: dict[str, list[T]]) -> Iterable[T]:
    """Items of `wanted` that are not in `present`, in `wanted` order"""
    existing = set(chain.from_iterable(present.values()))
    return [item for item in chain.from_iterable(wanted.values()) if item not in existing]


def _count(items: dict[str, list[T]]) -> int:
    return sum(len(app_items) for app_items in items.values())
