"""Application constants."""

USER_AGENT = "envcollect/1.0"
API_KEY_HEADER = "X-Goog-Api-Key"
API_KEY_ENV = "GOOGLE_MAPS_API_KEY"
PROJECT_ID_ENV = "GCP_PROJECT_ID"
DEBUG_ENV = "DEBUG"
COLLECTORS = ("weather", "pollen")
PRESSURE_HORIZONS_HOURS = (1, 3, 6, 12, 24)
TREND_RISING = "rising"
TREND_FALLING = "falling"
TREND_STABLE = "stable"
TREND_UNKNOWN = "unknown"
EXIT_SUCCESS = 0
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "collector",
    "stage",
    "location",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "error_code",
    "message",
)
