from pathlib import Path
from typing import Union


class RoutesyncError(Exception):
    pass


class ConfigurationError(RoutesyncError):
    """Errors in the applications file or in the files it references"""

    pass


class InvalidPathError(ConfigurationError):
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = path
        super().__init__(f"Path '{path}' is invalid.")


class FileLoadError(ConfigurationError):
    def __init__(self, filename: Union[str, Path]) -> None:
        self.filename = str(filename)
        super().__init__(f"File '{filename}' could not be loaded.")


class ParseError(ConfigurationError):
    def __init__(self, issue: str) -> None:
        self.issue = issue
        super().__init__(f"Parse error: {issue}.")


class MissingItemError(ConfigurationError):
    def __init__(self, item: str) -> None:
        self.item = item
        super().__init__(f"Item `{item}` required, but not present.")


class FingerprintError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("Unable to calculate a fingerprint for the provided certificate.")


class DocumentError(ConfigurationError):
    pass


class StateError(RoutesyncError):
    pass


class InvalidOrderError(StateError):
    """
    Raised by ConfigState.apply when an order cannot be applied to the current state.
    The state is left untouched.
    """

    pass


class ProxyError(RoutesyncError):
    """Errors talking to the proxy over its command channel"""

    pass


class ChannelError(ProxyError):
    pass


class MalformedMessageError(ProxyError):
    def __init__(self, issue: str) -> None:
        self.issue = issue
        super().__init__(f"Malformed message: {issue}.")


class NoResponseError(ProxyError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"no response from the proxy while attempting '{action}'")


class ExecutionFailureError(ProxyError):
    def __init__(self, error: str) -> None:
        self.error = error
        super().__init__(f"Proxy responded with an error: {error}.")


class UnsupportedOrderError(ProxyError):
    def __init__(self, order_type: str) -> None:
        self.order_type = order_type
        super().__init__(f"Unsupported order: {order_type}.")


class WatchError(RoutesyncError):
    pass


class CLIError(RoutesyncError):
    pass
