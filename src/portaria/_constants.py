"""Internal constants shared across the library."""

DEFAULT_KEY_PREFIX = "portaria_express_"
DEFAULT_LOG_CAP = 2000
DEFAULT_OPERATOR = "Sistema"
USER_AGENT = "portaria/0.1"

# ------------------------------------------------------------------
# Storage slots (suffix appended to the configured key prefix)
# ------------------------------------------------------------------

ENTRIES_SLOT = "entries"
METERS_SLOT = "meters"
READINGS_SLOT = "meter_readings"
PACKAGES_SLOT = "packages"
SHIFTS_SLOT = "shifts"
BREAKFAST_SLOT = "breakfast"
PATROLS_SLOT = "patrols"
LOGS_SLOT = "logs"
SETTINGS_SLOT = "settings"
USERS_CACHE_SLOT = "users_cache"
DRAFT_SLOT = "draft"
DELETED_QUEUE_SLOT = "deleted_queue"

# ------------------------------------------------------------------
# Remote table names (used by tombstones and the cloud client)
# ------------------------------------------------------------------

ENTRIES_TABLE = "vehicle_entries"
METERS_TABLE = "meters"
READINGS_TABLE = "meter_readings"
PACKAGES_TABLE = "packages"
SHIFTS_TABLE = "work_shifts"
BREAKFAST_TABLE = "breakfast_list"
PATROLS_TABLE = "patrols"
LOGS_TABLE = "app_logs"

BREAKFAST_DELIVERED = "Entregue"
