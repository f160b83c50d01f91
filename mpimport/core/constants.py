"""
Static configuration shared across the pipeline: endpoints, limits,
file extensions, retry codes and environment variable names.
"""

# Region base URLs
REGION_HOSTS = {
    "US": "https://api.mixpanel.com",
    "EU": "https://api-eu.mixpanel.com",
    "IN": "https://api-in.mixpanel.com",
}

# Path per record type; lookup tables append the table id
ROUTES = {
    "event": "/import",
    "user": "/engage",
    "group": "/groups",
    "table": "/lookup-tables",
}

RECORD_TYPE_ALIASES = {
    "event": "event",
    "events": "event",
    "user": "user",
    "users": "user",
    "people": "user",
    "profile": "user",
    "profiles": "user",
    "group": "group",
    "groups": "group",
    "table": "table",
    "tables": "table",
    "lookup": "table",
}

# Hard API caps on records per request
MAX_RECORDS_PER_BATCH = {
    "event": 2000,
    "user": 2000,
    "group": 200,
    "table": 2000,
}

DEFAULT_RECORDS_PER_BATCH = 2000
DEFAULT_BYTES_PER_BATCH = 2_000_000
DEFAULT_WORKERS = 10
DEFAULT_MAX_RETRIES = 10
DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_TIMEOUT_SECONDS = 60.0

# Sub-batches are cut once they reach this share of the byte bound
BYTE_SPLIT_RATIO = 0.95

# Files smaller than this share of available memory are loaded eagerly
MEMORY_LOAD_RATIO = 0.75

# Ingestion quota used for the percent-of-quota estimate
QUOTA_EVENTS_PER_MINUTE = 1_800_000

PROFILE_OPERATIONS = (
    "$set",
    "$set_once",
    "$add",
    "$union",
    "$append",
    "$remove",
    "$unset",
)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 501, 502, 503, 504, 524})
AUTH_FAILURE_STATUS_CODES = frozenset({401, 403})

LINE_DELIMITED_EXTENSIONS = (".jsonl", ".ndjson", ".txt")
JSON_EXTENSIONS = (".json",)
TABLE_EXTENSIONS = (".csv", ".tsv")
PARQUET_EXTENSIONS = (".parquet",)
SUPPORTED_EXTENSIONS = (
    LINE_DELIMITED_EXTENSIONS + JSON_EXTENSIONS + TABLE_EXTENSIONS + PARQUET_EXTENSIONS
)

CLOUD_SCHEMES = ("gs://", "s3://")

# Environment variable -> option name (lowest precedence)
ENV_OPTION_MAP = {
    "MP_PROJECT": "project",
    "MP_ACCT": "acct",
    "MP_PASS": "password",
    "MP_SECRET": "secret",
    "MP_TOKEN": "token",
    "MP_TYPE": "record_type",
    "MP_TABLE_ID": "lookup_table_id",
    "MP_GROUP_KEY": "group_key",
    "MP_START": "start",
    "MP_END": "end",
}
