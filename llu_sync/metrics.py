from prometheus_client import Counter, Histogram

# Histogram for API call latency (seconds)
llu_api_call_latency_seconds = Histogram(
    'llu_api_call_latency_seconds',
    'Latency of LibreLinkUp API calls in seconds',
    ['method', 'endpoint']
)

# Counter for total API calls
# status: success, transport_error, protocol_error, auth_error
llu_api_call_total = Counter(
    'llu_api_call_total',
    'Total LibreLinkUp API calls',
    ['method', 'endpoint', 'status']
)

# Sync run outcomes and durations
sync_run_total = Counter(
    'sync_run_total',
    'Total number of sync runs',
    ['status']  # status: success, failure, skipped
)
sync_run_duration_seconds = Histogram(
    'sync_run_duration_seconds',
    'Duration of sync runs in seconds'
)

# Health records written
records_written_total = Counter(
    'records_written_total',
    'Total number of blood glucose records written to the health store'
)

# Wearable mirror pushes
wearable_push_total = Counter(
    'wearable_push_total',
    'Total wearable mirror push attempts',
    ['status']  # status: success, error, unavailable
)

# How reading timestamps were resolved
timestamp_resolution_total = Counter(
    'timestamp_resolution_total',
    'Reading timestamps by resolution path',
    ['kind']  # kind: pattern, epoch_millis, fallback_now
)

__all__ = [
    'llu_api_call_latency_seconds',
    'llu_api_call_total',
    'sync_run_total',
    'sync_run_duration_seconds',
    'records_written_total',
    'wearable_push_total',
    'timestamp_resolution_total',
]
