"""
Lifecycle Orchestrator (single-flight model loader)

Owns the load/ready/error state of exactly one (language, model) pair at a
time and drives the worker bridge.

States:

    Idle ──ensure_model_loaded──▶ Initializing ──ready──▶ Ready
                                       │
                                       └──error──▶ Error

Selecting a different language from Ready, Error or Initializing performs a
full reset (the old worker is terminated, its state discarded) and re-enters
Initializing for the new language. At most one worker is resident globally.

Concurrent ensure_model_loaded() calls for the same language share one load
attempt. Messages from a worker that is no longer the current one, or that
serves a language other than the current one, are ignored.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Optional

from .bridge import WORKER_CRASHED, BaseWorkerChannel, request_translation
from .config import TranslatorSettings
from .errors import (
    UNKNOWN,
    LoadSuperseded,
    ModelLoadFailure,
    ModelNotReady,
    WorkerCrash,
    WorkerCreationFailure,
)
from .language_codes import get_catalog_entry
from .progress import ProgressAggregator
from .request_queue import RequestQueue
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)


@dataclass
class TranslationState:
    """
    Current model lifecycle state. Replaced wholesale on every reset.

    is_ready and is_initializing are never both true; worker_handle is set
    only between the start of a load and the next teardown.
    """
    worker_handle: Optional[BaseWorkerChannel] = None
    is_ready: bool = False
    is_initializing: bool = False
    current_model_id: Optional[str] = None
    current_language: Optional[str] = None
    error: Optional[str] = None

    @property
    def phase(self):
        if self.is_ready:
            return 'ready'
        if self.is_initializing:
            return 'initializing'
        if self.error:
            return 'error'
        return 'idle'

    def snapshot(self):
        return {
            'isReady': self.is_ready,
            'isInitializing': self.is_initializing,
            'currentLanguage': self.current_language,
            'currentModel': self.current_model_id,
            'error': self.error,
        }


class LifecycleOrchestrator:
    """
    Args:
        worker_factory: model_id -> started BaseWorkerChannel. May raise
            WorkerCreationFailure (or anything else) when the worker cannot start.
        progress: aggregator fed by worker progress messages
        request_queue: drained for a language when its model becomes ready
        settings: TranslatorSettings
    """

    def __init__(self, worker_factory, progress=None, request_queue=None, settings=None):
        self.settings = settings if settings is not None else TranslatorSettings()
        self.worker_factory = worker_factory
        self.progress = progress if progress is not None else ProgressAggregator()
        if request_queue is None:
            request_queue = RequestQueue(
                max_items=self.settings.max_queued_requests,
                failure_marker=self.settings.failure_marker,
            )
        self.request_queue = request_queue
        self.update_callback = None
        self.state = TranslationState()

        self._loads = SingleFlight()
        self._pending_load: Optional[asyncio.Future] = None
        self._background_tasks = set()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def ensure_model_loaded(self, language) -> asyncio.Future:
        """
        Make sure the model for `language` is resident and return a future
        that settles when it is ready (or failed).

        The state transition happens before this returns: right after the
        call, get_translation_state() already reports the new language as
        initializing. Must be called from the event loop.

        Raises:
            UnsupportedLanguage: synchronously, for codes outside the catalog
        """
        entry = get_catalog_entry(language)
        loop = asyncio.get_running_loop()
        state = self.state

        if (state.is_ready
                and state.current_language == entry.language_code
                and state.current_model_id == entry.model_id
                and state.worker_handle is not None):
            logger.debug("Model already ready for %s", entry.language_code)
            done = loop.create_future()
            done.set_result(None)
            return done

        if entry.language_code in self._loads:
            logger.debug("Already initializing %s, sharing the pending load", entry.language_code)

        return self._loads.run_once(entry.language_code, functools.partial(self._start_load, entry, loop))

    def _start_load(self, entry, loop):
        logger.info("Starting initialization for %s (model: %s)", entry.language_code, entry.model_id)
        self.reset()

        future = loop.create_future()
        self._pending_load = future
        self.state = TranslationState(
            is_initializing=True,
            current_language=entry.language_code,
            current_model_id=entry.model_id,
        )
        self.progress.begin_attempt(entry.display_name)

        try:
            handle = self.worker_factory(entry.model_id)
        except Exception as e:
            logger.error("Failed to create worker for %s: %s", entry.language_code, e)
            self.state.is_initializing = False
            self.state.error = f"Failed to create worker: {e}"
            self.progress.mark_error()
            self._pending_load = None
            error = e if isinstance(e, WorkerCreationFailure) else WorkerCreationFailure(str(e))
            future.set_exception(error)
            return future

        self.state.worker_handle = handle
        handle.on_message(functools.partial(self._handle_worker_message, handle, entry))
        handle.send({
            'action': 'initialize',
            'modelName': entry.model_id,
            'targetLanguage': entry.language_code,
        })
        return future

    def reset(self):
        """
        Tear everything down: terminate the worker, reject an in-flight load,
        replace the state with a fresh idle one, reset progress, and forget
        pending single-flight entries.
        """
        previous = self.state
        if previous.worker_handle is not None:
            logger.info("Resetting translation state (was %s)", previous.current_language)
            previous.worker_handle.terminate()

        pending, self._pending_load = self._pending_load, None
        if pending is not None and not pending.done():
            pending.set_exception(LoadSuperseded(
                f"Load for {previous.current_language} superseded by a language switch"))

        self.state = TranslationState()
        self._loads.clear()
        self.progress.reset()

    def shutdown(self):
        self.reset()
        for task in list(self._background_tasks):
            task.cancel()

    # ------------------------------------------------------------------
    # Worker messages
    # ------------------------------------------------------------------

    def _is_current(self, handle, entry):
        return (handle is self.state.worker_handle
                and self.state.current_language == entry.language_code)

    def _handle_worker_message(self, handle, entry, message):
        if not self._is_current(handle, entry):
            logger.debug("Ignoring %s message for %s, current language is %s",
                         message.get('status'), entry.language_code, self.state.current_language)
            return

        status = message.get('status')

        if status == 'initiate':
            self.progress.initiate(entry.display_name)

        elif status == 'progress':
            self.progress.update_file(message.get('file'), message.get('progress'), message.get('totalFiles'))

        elif status == 'ready':
            self._on_ready(entry)

        elif status == 'error':
            # Translate errors are correlated by the channel itself
            if message.get('translationId') is not None:
                return
            self._on_error(handle, entry, message)

    def _on_ready(self, entry):
        if self.state.is_ready:
            return
        logger.info("Model ready for %s", entry.language_code)

        self.state.is_ready = True
        self.state.is_initializing = False
        self.state.error = None
        self.progress.mark_ready()

        self._spawn(self.request_queue.drain(entry.language_code, self.translate, self._notify_update))

        pending, self._pending_load = self._pending_load, None
        if pending is not None and not pending.done():
            pending.set_result(None)

    def _on_error(self, handle, entry, message):
        error_message = message.get('error') or 'Unknown error'
        was_ready = self.state.is_ready

        self.state.is_initializing = False
        self.state.is_ready = False
        self.state.error = error_message
        self.progress.mark_error()

        crashed = message.get('category') is None and error_message == WORKER_CRASHED

        if was_ready or crashed:
            # The resident model is gone; drop the worker and anything waiting on it
            logger.error("Worker for %s failed: %s", entry.language_code, error_message)
            self.state.worker_handle = None
            handle.terminate()
        else:
            logger.error("Model initialization failed for %s: %s", entry.language_code, error_message)

        pending, self._pending_load = self._pending_load, None
        if pending is not None and not pending.done():
            if crashed:
                pending.set_exception(WorkerCrash(error_message))
            else:
                pending.set_exception(ModelLoadFailure(error_message, message.get('category') or UNKNOWN))

    def _notify_update(self, request_id, text):
        if self.update_callback is not None:
            self.update_callback(request_id, text)

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    def is_ready_for(self, language):
        state = self.state
        return bool(state.worker_handle is not None
                    and state.is_ready
                    and state.current_language == language)

    async def translate(self, text, language):
        """
        Translate with the resident model.

        Raises:
            ModelNotReady, TranslationTimeout, TranslationFailure,
            InvalidOutputShape, WorkerTerminated
        """
        if not self.is_ready_for(language):
            raise ModelNotReady('Translation model not ready')
        return await request_translation(
            self.state.worker_handle, text, language,
            timeout=self.settings.translation_timeout,
        )

    def _spawn(self, coroutine):
        task = asyncio.get_running_loop().create_task(coroutine)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task
