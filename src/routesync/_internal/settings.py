import os

APPLICATIONS_FILE = os.getenv("ROUTESYNC_APPLICATIONS", "applications.toml")
PROXY_CONFIG_FILE = os.getenv("ROUTESYNC_PROXY_CONFIG", "config.toml")
# takes precedence over the command socket from the proxy config
PROXY_SOCKET = os.getenv("ROUTESYNC_SOCKET")

# debounce interval for file changes, in seconds
WATCH_INTERVAL = float(os.getenv("ROUTESYNC_INTERVAL", "5"))
# periodic full resynchronization with the proxy, in seconds. Disabled if unset
REFRESH_INTERVAL = (
    float(os.environ["ROUTESYNC_REFRESH_INTERVAL"])
    if os.getenv("ROUTESYNC_REFRESH_INTERVAL")
    else None
)

LOG_LEVEL = os.getenv("ROUTESYNC_LOG_LEVEL", "INFO").upper()
FILE_LOG = os.getenv("ROUTESYNC_FILE_LOG")
FILE_LOG_LEVEL = os.getenv("ROUTESYNC_FILE_LOG_LEVEL", "DEBUG").upper()
