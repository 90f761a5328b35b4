"""Prometheus metrics for ActiveVocab."""
from prometheus_client import Counter, Gauge, start_http_server

# Vocabulary metrics
words_added = Counter(
    "activevocab_words_added_total",
    "Total number of words added to the local store",
)

reviews_recorded = Counter(
    "activevocab_reviews_total",
    "Total number of review outcomes recorded",
    ["outcome"],  # success, retry, skip
)

# Sync metrics
sync_operations = Counter(
    "activevocab_sync_operations_total",
    "Total number of sync operations against the remote store",
    ["table", "direction"],  # direction: push, fetch
)

sync_errors = Counter(
    "activevocab_sync_errors_total",
    "Total number of failed sync operations",
    ["table", "direction"],
)

sync_skipped = Counter(
    "activevocab_sync_skipped_total",
    "Pushes skipped because the local collection was empty",
    ["table"],
)

# Generation metrics
generation_retries = Counter(
    "activevocab_generation_retries_total",
    "Retries issued against the remote generation service",
    ["action"],
)

generation_fallbacks = Counter(
    "activevocab_generation_fallbacks_total",
    "Degraded placeholders substituted after the retry budget ran out",
    ["action"],
)

# Cache metrics
cache_evictions = Counter(
    "activevocab_audio_cache_evictions_total",
    "Audio cache entries evicted to make room for new entries",
)

cache_bytes = Gauge(
    "activevocab_audio_cache_bytes",
    "Bytes currently held by the audio cache",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
