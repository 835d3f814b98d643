import datetime
from collections import deque
from pathlib import Path
from typing import Iterable, Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization as crypto_serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from routesync._internal.core.errors import ChannelError, InvalidOrderError, WatchError
from routesync._internal.core.models.messages import (
    ConfigMessage,
    ConfigMessageAnswer,
    ConfigMessageStatus,
    DumpStateCommand,
)
from routesync._internal.core.models.orders import (
    AddApplication,
    AddHttpFront,
    AddInstance,
    Application,
    HttpFront,
    Instance,
)
from routesync._internal.core.models.state import ConfigState
from routesync._internal.proxy.channel import ChannelFactory, CommandChannel
from routesync._internal.sync.watcher import FileEvent


class FakeProxy:
    """
    In-memory proxy that applies orders to its own ConfigState.
    Answers can be scripted to fail in the ways a real proxy does.
    """

    def __init__(self, state: Optional[ConfigState] = None) -> None:
        self.state = state if state is not None else ConfigState()
        self.received: list[ConfigMessage] = []
        # order types answered with ERROR
        self.failing_orders: set[str] = set()
        # order types answered with PROCESSING before the final answer
        self.processing_orders: set[str] = set()
        self.fail_dump = False
        self.wrong_id = False
        self.silent = False
        self.unreachable = False
        self.connections = 0
        self.channels: list["FakeChannel"] = []

    def connector(self) -> ChannelFactory:
        async def connect() -> CommandChannel:
            if self.unreachable:
                raise ChannelError("Could not connect to the proxy command socket")
            self.connections += 1
            channel = FakeChannel(self)
            self.channels.append(channel)
            return channel

        return connect

    @property
    def orders(self) -> list:
        return [
            m.command.data for m in self.received if not isinstance(m.command, DumpStateCommand)
        ]

    def answer(self, message: ConfigMessage) -> list[ConfigMessageAnswer]:
        self.received.append(message)
        if self.silent:
            return []
        answer_id = "ID-WRONG0" if self.wrong_id else message.id
        if isinstance(message.command, DumpStateCommand):
            if self.fail_dump:
                return [_answer(answer_id, ConfigMessageStatus.ERROR, "dump failed")]
            return [
                _answer(
                    answer_id,
                    ConfigMessageStatus.OK,
                    "state dumped",
                    data=self.state.model_dump(mode="json"),
                )
            ]
        order = message.command.data
        answers = []
        if order.type in self.processing_orders:
            answers.append(_answer(answer_id, ConfigMessageStatus.PROCESSING, "in progress"))
        if order.type in self.failing_orders:
            answers.append(_answer(answer_id, ConfigMessageStatus.ERROR, f"{order.type} failed"))
            return answers
        try:
            self.state.apply(order)
        except InvalidOrderError as e:
            answers.append(_answer(answer_id, ConfigMessageStatus.ERROR, str(e)))
            return answers
        answers.append(_answer(answer_id, ConfigMessageStatus.OK, "done"))
        return answers


class FakeChannel(CommandChannel):
    def __init__(self, proxy: FakeProxy) -> None:
        self.proxy = proxy
        self.pending: deque[ConfigMessageAnswer] = deque()
        self.closed = False

    async def send(self, message: ConfigMessage) -> None:
        if self.closed:
            raise ChannelError("Channel is closed")
        # go through the wire format to catch serialization issues
        message = ConfigMessage.from_bytes(message.to_bytes())
        self.pending.extend(self.proxy.answer(message))

    async def receive(self) -> Optional[ConfigMessageAnswer]:
        if not self.pending:
            return None
        return self.pending.popleft()

    async def close(self) -> None:
        self.closed = True


class FakeEventSource:
    """
    Returns scripted events one by one and fails with WatchError once they run out,
    which stops the reconciliation loop.
    """

    def __init__(self, events: Iterable[FileEvent] = ()) -> None:
        self.events = deque(events)
        self.watched: list[Path] = []

    def watch(self, path: Path) -> None:
        self.watched.append(Path(path))

    def unwatch(self, path: Path) -> None:
        self.watched.remove(Path(path))

    def get(self, timeout: Optional[float] = None) -> Optional[FileEvent]:
        if not self.events:
            raise WatchError("No more events")
        return self.events.popleft()


def _answer(
    answer_id: str, status: ConfigMessageStatus, message: str, data: Optional[dict] = None
) -> ConfigMessageAnswer:
    return ConfigMessageAnswer(id=answer_id, status=status, message=message, data=data)


def make_certificate(hostname: str = "example.com") -> tuple[str, str]:
    """Returns a self-signed PEM certificate and its PEM private key."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostname)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(hostname)]), critical=False)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(crypto_serialization.Encoding.PEM).decode()
    key_pem = key.private_bytes(
        crypto_serialization.Encoding.PEM,
        crypto_serialization.PrivateFormat.PKCS8,
        crypto_serialization.NoEncryption(),
    ).decode()
    return cert_pem, key_pem


def write_certificate(
    directory: Path, hostname: str = "example.com"
) -> tuple[Path, Path, str]:
    """Writes a self-signed certificate and key to `directory`, returns their paths and PEM."""
    cert_pem, key_pem = make_certificate(hostname)
    cert_path = directory / f"{hostname}.crt"
    key_path = directory / f"{hostname}.key"
    cert_path.write_text(cert_pem)
    key_path.write_text(key_pem)
    return cert_path, key_path, cert_pem


def get_http_state(
    app_id: str = "app",
    hostname: str = "example.com",
    backends: Iterable[Union[str, tuple[str, int]]] = (("10.0.0.1", 80),),
) -> ConfigState:
    """Returns a state with one HTTP application, as the translator would build it."""
    state = ConfigState()
    state.apply(AddApplication(data=Application(app_id=app_id)))
    state.apply(AddHttpFront(data=HttpFront(app_id=app_id, hostname=hostname)))
    for backend in backends:
        host, port = backend if isinstance(backend, tuple) else (backend, 80)
        state.apply(AddInstance(data=Instance(app_id=app_id, ip_address=host, port=port)))
    return state
