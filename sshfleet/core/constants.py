"""
Project constants definitions
"""

# ============================================================
# Fleet Config File
# ============================================================

FLEET_CONFIG_PATH = "~/.ssh/sshfleet_config"
SSH_CONFIG_MODE = 0o600
SSH_DIR = "~/.ssh"

# ============================================================
# Settings
# ============================================================

SETTINGS_PATH = "~/.sshfleet/config.toml"
ENV_PREFIX = "SSHFLEET_"

# ============================================================
# Default Values
# ============================================================

DEFAULT_USER = "root"
DEFAULT_SSH_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_VERIFY_TIMEOUT = 10
DEFAULT_COMMAND_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 8
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_KEY_NAME = "id_rsa"
DEFAULT_KEY_BITS = 3072
EXEC_POLL_INTERVAL = 0.05
EXEC_READ_SIZE = 32768

# ============================================================
# Sequences
# ============================================================

SEQUENCE_SIZE = 5

# ============================================================
# State Storage
# ============================================================

DEFAULT_STATE_DIR = "~/.sshfleet/state"
HISTORY_STATE_KEY = "history"
SEQUENCES_STATE_KEY = "sequences"
VERIFIED_STATE_KEY = "verified"

# ============================================================
# Verification
# ============================================================

VERIFY_MARKER = "sshfleet-connection-ok"
