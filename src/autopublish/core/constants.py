"""Global constants for autopublish.

Centralizes the timing defaults and protocol identifiers shared by the
driver process and the in-host orchestrator.
"""

# =============================================================================
# Source Sync
# =============================================================================

SYNC_MAX_ATTEMPTS = 3
"""Attempts at the stash/fetch/checkout sequence before giving up."""

SYNC_RETRY_DELAY_SECONDS = 5.0
"""Fixed delay between sync attempts."""

DEFAULT_GIT_REMOTE = "origin"
DEFAULT_GIT_BRANCH = "HEAD"

# =============================================================================
# Readiness
# =============================================================================

READINESS_POLL_INTERVAL_SECONDS = 0.5
"""Spacing between readiness probes (builder handle, login)."""

BUILDER_READY_TIMEOUT_SECONDS = 30.0
"""How long the builder handle may take to appear after host activation."""

HOST_POLL_INTERVAL_SECONDS = 1.0
"""Coarse interval between host activation attempts."""

# =============================================================================
# Publish retry
# =============================================================================

PUBLISH_MAX_ATTEMPTS = 3
PUBLISH_RETRY_DELAY_SECONDS = 5.0
HEARTBEAT_INTERVAL_SECONDS = 30.0

# =============================================================================
# Watchdog
# =============================================================================

WATCHDOG_IDLE_THRESHOLD_SECONDS = 15 * 60.0
"""No new log output for this long means the host is presumed hung."""

WATCHDOG_POLL_INTERVAL_SECONDS = 30.0

BUSY_SCAN_TAIL_BYTES = 64 * 1024
"""Trailing bytes of the host log inspected for busy-but-healthy markers."""

DEFAULT_BUSY_PATTERNS: tuple[str, ...] = (
    r"Compiling Shaders",
    r"shader compile",
    r"begin compiling",
    r"warmup",
    r"shaderworker",
    r"Preparing shaders",
)
"""Log markers of long quiet phases (shader and asset compilation)."""

KILL_WAIT_SECONDS = 5.0
"""How long to wait for a killed process tree to disappear."""

# =============================================================================
# Consent
# =============================================================================

AGREEMENT_CODE = "content.copyright.owned"
AGREEMENT_VERSION = 1
AGREEMENT_TEXT = (
    "By clicking OK, I certify that I have the necessary rights to upload "
    "this content and that it will not infringe on any third-party legal "
    "or intellectual property rights."
)

# =============================================================================
# Session slots
# =============================================================================

SLOT_UPLOAD_PENDING = "autopublish.upload_pending"
SLOT_UPLOAD_PARAMS = "autopublish.upload_params"
SLOT_CONSENT_CONTENT_LIST = "autopublish.consent.content_list"

SLOT_DELIMITER = ";"
"""Separator for multi-valued slot encodings (job params, consent list)."""
