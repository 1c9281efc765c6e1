"""
Constants and configuration values used across the chainbox codebase.
"""

# Container naming and labels
NODE_NAME_FORMAT = "{prefix}-node-{blockchain}-{network}"
LABEL_NODE = "chainbox.node"
LABEL_PREFIX = "chainbox.prefix"
LABEL_BLOCKCHAIN = "chainbox.blockchain"
LABEL_NETWORK = "chainbox.network"

# Docker engine
DOCKER_API_VERSION = "1.41"
DEFAULT_DOCKER_SOCKET = "unix:///var/run/docker.sock"
DEFAULT_WINDOWS_DOCKER_PIPE = "npipe:////./pipe/docker_engine"
CONTAINER_STOP_TIMEOUT = 10  # seconds
CONTAINER_REMOVE_TIMEOUT = 30  # seconds to wait for auto-remove after stop

# Environment variables
ENV_DOCKER_HOST = "CHAINBOX_DOCKER_HOST"
ENV_DOCKER_HOST_FALLBACK = "DOCKER_HOST"
ENV_LOG_LEVEL = "CHAINBOX_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Health polling after start
HEALTH_POLL_INTERVAL = 0.1  # seconds between checks while "starting"

# HTTP readiness probe (2ms base x 100 factor, doubling)
HTTP_SCHEMES = frozenset({"http", "https", "ws", "wss"})
PROBE_SCHEME = "http"
PROBE_HOST = "127.0.0.1"
HTTP_PROBE_DELAY = 0.2  # seconds
HTTP_PROBE_BACKOFF = 2.0
HTTP_PROBE_MAX_DELAY = 2.0  # seconds
HTTP_PROBE_ATTEMPTS = 20
HTTP_PROBE_REQUEST_TIMEOUT = 5.0  # seconds per GET

# Nodes without an HTTP endpoint are given time to crash on bad arguments
NON_HTTP_SETTLE_TIME = 15.0  # seconds

# Connector start retries (Fibonacci)
CONNECTOR_RETRY_DELAY = 1.0  # seconds
CONNECTOR_RETRY_MAX_DELAY = 5.0  # seconds
CONNECTOR_RETRY_ATTEMPTS = 10

# Log forwarding
LOG_FORWARDER_LOGGER = "chainbox.node"
