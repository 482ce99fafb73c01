"""Hard-coded configuration constants not meant to be user-configurable."""

DEFAULT_STREAM_STALE_SECONDS = 60
DEFAULT_MAX_DURATION_SECONDS = 60
DEFAULT_MAX_STEPS = 5
DEFAULT_STREAM_POLL_INTERVAL_SECONDS = 0.5
TITLE_MAX_LENGTH = 80
REASONING_MODEL_SELECTOR = "chat-model-reasoning"
DEFAULT_MODEL_SELECTOR = "chat-model"
