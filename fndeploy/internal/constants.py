# ---------------------------------------------------------------------
# Create-time defaults
# ---------------------------------------------------------------------

DEFAULT_HANDLER = "index.handler"
DEFAULT_RUNTIME = "nodejs20.x"
DEFAULT_TIMEOUT_SECONDS = 3
DEFAULT_EPHEMERAL_STORAGE_MB = 512

# ---------------------------------------------------------------------
# Service limits
# ---------------------------------------------------------------------

DIRECT_UPLOAD_LIMIT_BYTES = 50 * 1024 * 1024

MEMORY_SIZE_RANGE = (128, 10240)
TIMEOUT_RANGE = (1, 900)
EPHEMERAL_STORAGE_RANGE = (512, 10240)
MAX_LAYERS = 5

ARCHITECTURES = ("x86_64", "arm64")
TRACING_MODES = ("Active", "PassThrough")
SNAP_START_MODES = ("PublishedVersions", "None")
LOG_FORMATS = ("JSON", "Text")

# ---------------------------------------------------------------------
# Readiness polling and read retries
# ---------------------------------------------------------------------

DEFAULT_MAX_WAIT_SECONDS = 300.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_READ_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0

LOG_FILE_NAME = "fndeploy.log.json"
