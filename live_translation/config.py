"""
Configuration defaults for the translation engine.

The server script overrides these from its command line; everything else
takes a TranslatorSettings instance.
"""

from dataclasses import dataclass

# --- Fine-Tuning Dials ---

# [CONCEPT] Client-side timeout -> How long a translate request may wait for the worker.
TRANSLATION_TIMEOUT_SECONDS = 15.0

# [CONCEPT] Generation parameters -> Passed to the translation pipeline inside the worker.
MAX_TRANSLATION_LENGTH = 256
NUM_BEAMS = 2

# [CONCEPT] Model naming -> Catalog model ids are this prefix + the target language suffix.
MODEL_ID_PREFIX = "Helsinki-NLP/opus-mt-en-"

# Marker delivered to the update callback when a queued request cannot be upgraded.
TRANSLATION_FAILURE_MARKER = "[Translation Error]"

# How often (seconds) the reader thread checks whether the worker process is still alive.
WORKER_POLL_INTERVAL = 0.25

# How long (seconds) a worker gets to exit on its own after the stop sentinel before it is terminated.
WORKER_JOIN_TIMEOUT = 2.0

# Upper bound on buffered requests across all languages. Oldest are dropped first.
MAX_QUEUED_REQUESTS = 200

DEFAULT_DEVICE = 'cpu'


@dataclass
class TranslatorSettings:
    translation_timeout: float = TRANSLATION_TIMEOUT_SECONDS
    max_length: int = MAX_TRANSLATION_LENGTH
    num_beams: int = NUM_BEAMS
    device: str = DEFAULT_DEVICE
    max_queued_requests: int = MAX_QUEUED_REQUESTS
    failure_marker: str = TRANSLATION_FAILURE_MARKER
    poll_interval: float = WORKER_POLL_INTERVAL
    join_timeout: float = WORKER_JOIN_TIMEOUT

    @classmethod
    def from_args(cls, args):
        """Build settings from the server's argparse namespace."""
        return cls(
            translation_timeout=args.translation_timeout,
            device=args.device,
            max_queued_requests=args.max_queued,
        )
