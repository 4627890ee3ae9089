"""
Error taxonomy for the translation engine.

Load-time errors surface through the orchestrator state and reject the
load future. Translation-time errors are caught by the façade, which then
degrades to the fallback translator.
"""

# Load failure categories reported by the worker
NETWORK = 'network'
MEMORY = 'memory'
PLATFORM = 'platform'
UNKNOWN = 'unknown'

CATEGORY_MESSAGES = {
    NETWORK: 'Network connection failed',
    MEMORY: 'Insufficient memory',
    PLATFORM: 'Platform not supported',
}


class TranslationError(Exception):
    """Base class for every error raised by the engine."""


class UnsupportedLanguage(TranslationError):
    def __init__(self, language):
        super().__init__(f"Translation not supported for language: {language}")
        self.language = language


class WorkerCreationFailure(TranslationError):
    """The background worker process could not be started."""


class ModelLoadFailure(TranslationError):
    """The worker reported a failure while loading the model."""

    def __init__(self, message, category=UNKNOWN):
        super().__init__(message)
        self.category = category


class LoadSuperseded(TranslationError):
    """A load attempt was torn down because another language was selected."""


class ModelNotReady(TranslationError):
    pass


class TranslationTimeout(TranslationError):
    pass


class TranslationFailure(TranslationError):
    """The worker answered a translate request with an error."""


class InvalidOutputShape(TranslationFailure):
    pass


class WorkerCrash(TranslationError):
    pass


class WorkerTerminated(TranslationError):
    """Raised into requests that were pending when their worker was torn down."""


def classify_load_error(error):
    """
    Map an exception raised while loading or running a model to a
    (category, user-facing message) pair.

    Example:
        classify_load_error(ConnectionError("Failed to fetch")) → ('network', 'Network connection failed')
        classify_load_error(ValueError("bad config"))           → ('unknown', 'bad config')
    """
    message = str(error) or type(error).__name__
    lowered = message.lower()

    if isinstance(error, (ConnectionError, TimeoutError)) or any(
            marker in lowered for marker in ('fetch', 'network', 'connection', 'resolve host', 'timed out')):
        category = NETWORK
    elif isinstance(error, MemoryError) or any(
            marker in lowered for marker in ('memory', 'allocation', 'allocate')):
        category = MEMORY
    elif any(marker in lowered for marker in ('not supported', 'unsupported', 'no kernel image', 'illegal instruction')):
        category = PLATFORM
    else:
        return UNKNOWN, message

    return category, CATEGORY_MESSAGES[category]
