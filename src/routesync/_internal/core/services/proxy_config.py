import tomllib
from pathlib import Path

from routesync._internal.core.errors import DocumentError, MissingItemError
from routesync._internal.core.services.translator import load_file


def load_command_socket(config_path: Path) -> Path:
    """
    Reads the command socket path from the proxy's own TOML config.
    Relative paths are resolved against the config's directory.
    """
    config_path = Path(config_path)
    data = load_file(config_path)
    try:
        config = tomllib.loads(data)
    except tomllib.TOMLDecodeError as e:
        raise DocumentError(f"Invalid proxy config {config_path}: {e}") from e
    command_socket = config.get("command_socket")
    if not isinstance(command_socket, str) or not command_socket:
        raise MissingItemError("command_socket")
    socket_path = Path(command_socket).expanduser()
    if not socket_path.is_absolute():
        socket_path = config_path.parent / socket_path
    return socket_path
