from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Logging
LOG_LEVEL = config.get("LOG_LEVEL", "info")
DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "vault_debug.log")

# OAuth client identity (hardcoded - not user configurable)
# The vault server registers this client and only redirects back to this scheme
CLIENT_ID = "pulse-mobile"
REDIRECT_URI = "pulse://auth/callback"

# Vault OAuth endpoints, relative to the user-supplied vault origin
AUTHORIZE_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"
TOKEN_REFRESH_PATH = "/oauth/token/refresh"

# Vault URL pre-filled by the login prompt (empty means ask)
DEFAULT_VAULT_URL = config.get("DEFAULT_VAULT_URL", "")

# Timeout configuration
# Connection timeout: Time to establish TCP connection
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
# Request timeout: Total timeout for authenticated API calls
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 15.0)
# Token endpoint timeout: code exchange and refresh calls
TOKEN_EXCHANGE_TIMEOUT = config.get("TOKEN_EXCHANGE_TIMEOUT", 30.0)

# Refresh proactively when the access token expires within this many seconds
TOKEN_EXPIRY_BUFFER_SECONDS = config.get("TOKEN_EXPIRY_BUFFER_SECONDS", 60)

# Secure credential storage (OS keychain service name)
KEYRING_SERVICE = config.get("KEYRING_SERVICE", "pulse-vault")

# Upload destinations (not secret enough for the keychain, kept in a 0600 file)
DESTINATIONS_FILE = config.get(
    "DESTINATIONS_FILE",
    str(Path.home() / ".pulse-vault" / "upload_destinations.json"),
)
DESTINATION_DEFAULT_TTL_DAYS = config.get("DESTINATION_DEFAULT_TTL_DAYS", 30)
