"""Default configuration values for AppDeck."""

import sys
import tempfile

# Environment variables of the supervisor that launched apps inherit,
# as regular expressions matched against the whole variable name
DEFAULT_ENV_VARS_TO_INHERIT: tuple[str, ...] = (
    "TMP",
    "TEMP",
    "TMPDIR",
    "LANG",
    "LANGUAGE",
    "LC_.*",
    "PATH",
    "SYSTEMROOT",
    "PYTHON.*",
)

# Local deployer defaults
DEFAULT_LOCAL_DEPLOYER_CONFIG: dict[str, int | float | bool | str] = {
    "working_directories_root": tempfile.gettempdir(),
    "delete_files_on_exit": True,
    "launcher_cmd": sys.executable,
    "shutdown_timeout": 30,  # seconds
    "health_check_timeout": 2.0,  # seconds
    "host": "127.0.0.1",
}

# Group used when a request does not name one
DEFAULT_GROUP = "default"

# Lowest port probed when allocating dynamic ports
DEFAULT_SERVER_PORT = 8080
MAX_SERVER_PORT = 65535

# Prefix of the temporary directory holding all working directories
WORKING_DIRECTORY_PREFIX = "appdeck-"
