"""
Public Façade

The surface the caption UI talks to. translate_text() never waits on a model
load: when no ready model matches the requested language it answers with the
fallback translator, starts loading the model in the background, and (when a
request id is given) queues the request so the real translation arrives
later through the update callback.
"""

import asyncio
import functools
import logging

from .bridge import ProcessWorkerChannel
from .config import TranslatorSettings
from .errors import TranslationError
from .fallback import fallback_translate
from .language_codes import is_translation_supported, normalize_language_code
from .orchestrator import LifecycleOrchestrator
from .progress import ProgressAggregator
from .request_queue import RequestQueue

logger = logging.getLogger(__name__)


class LiveTranslator:
    """
    English→target translation for live captions.

    One instance owns one orchestrator, one progress aggregator and one
    request queue; separate instances share nothing.
    """

    def __init__(self, settings=None, worker_factory=None):
        """
        Args:
            settings: TranslatorSettings (defaults if omitted)
            worker_factory: model_id -> started worker channel. Defaults to
                spawning a ProcessWorkerChannel.
        """
        self.settings = settings if settings is not None else TranslatorSettings()
        if worker_factory is None:
            worker_factory = functools.partial(ProcessWorkerChannel.spawn, settings=self.settings)

        self.progress = ProgressAggregator()
        self.request_queue = RequestQueue(
            max_items=self.settings.max_queued_requests,
            failure_marker=self.settings.failure_marker,
        )
        self.orchestrator = LifecycleOrchestrator(
            worker_factory,
            progress=self.progress,
            request_queue=self.request_queue,
            settings=self.settings,
        )

    # --- Translation ---

    async def translate_text(self, text, language, request_id=None):
        """
        Translate `text` to `language`.

        Uses the resident model when it is ready for this language, otherwise
        returns the fallback translation right away. Never raises for model
        problems.
        """
        if not text or not text.strip():
            return ""

        language = normalize_language_code(language)

        if not is_translation_supported(language):
            logger.debug("Translation not supported for %s, using fallback", language)
            return fallback_translate(text, language)

        if self.orchestrator.is_ready_for(language):
            try:
                return await self.orchestrator.translate(text, language)
            except TranslationError as e:
                logger.warning("Translation failed for %s, using fallback: %s", language, e)
                return fallback_translate(text, language)

        self._load_in_background(language)

        state = self.orchestrator.state
        if request_id is not None and state.is_initializing and state.current_language == language:
            self.request_queue.enqueue(text, language, request_id)

        return fallback_translate(text, language)

    def _load_in_background(self, language):
        future = self.orchestrator.ensure_model_loaded(language)
        if not future.done():
            future.add_done_callback(functools.partial(_log_background_load, language))

    # --- Loading ---

    async def preload_translator(self, language, on_progress=None):
        """
        Load the model for `language` and wait until it is ready.

        Args:
            on_progress: optional callback receiving ProgressState snapshots
                while this call is waiting

        Raises:
            UnsupportedLanguage, WorkerCreationFailure, ModelLoadFailure,
            LoadSuperseded, WorkerCrash
        """
        language = normalize_language_code(language)
        subscription_id = self.progress.subscribe(on_progress) if on_progress else None
        try:
            # shield: a cancelled caller must not cancel the load other callers share
            await asyncio.shield(self.orchestrator.ensure_model_loaded(language))
        finally:
            if subscription_id is not None:
                self.progress.unsubscribe(subscription_id)

    # --- Queries ---

    def is_translation_supported(self, language):
        return is_translation_supported(language)

    def get_translation_state(self):
        return self.orchestrator.state.snapshot()

    def get_current_progress_state(self):
        return self.progress.snapshot()

    # --- Callbacks ---

    def set_translation_update_callback(self, callback):
        """callback(request_id, translated_text) for queued requests upgraded by the real model."""
        self.orchestrator.update_callback = callback

    def subscribe_progress(self, callback):
        return self.progress.subscribe(callback)

    def unsubscribe_progress(self, subscription_id):
        self.progress.unsubscribe(subscription_id)

    def shutdown(self):
        logger.info("Shutting down translator")
        self.orchestrator.shutdown()


def _log_background_load(language, future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning("Background model load for %s failed: %s", language, error)
