from prometheus_client import Counter

# Ingestion Metrics
signatures_processed = Counter(
    'discdir_signatures_processed_total',
    'Transactions processed by program listeners',
    ['program_id']
)

discriminators_stored = Counter(
    'discdir_discriminators_stored_total',
    'Discriminator upserts that committed',
    ['source']
)

instructions_skipped = Counter(
    'discdir_instructions_skipped_total',
    'Instructions that yielded no discriminator',
    ['reason']
)

ingestion_failures = Counter(
    'discdir_ingestion_failures_total',
    'Failures recovered by skipping a cycle, signature or instruction',
    ['stage', 'error']
)


def record_failure(stage: str, error: Exception) -> None:
    ingestion_failures.labels(stage=stage, error=type(error).__name__).inc()
