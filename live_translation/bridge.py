"""
Worker Bridge

The message channel between the asyncio orchestration layer and the
background worker process that hosts the translation model.

Wire protocol (plain dicts):

    → worker   {'action': 'initialize', 'modelName', 'targetLanguage'}
    → worker   {'action': 'translate', 'text', 'translationId', 'targetLanguage'}
    ← worker   {'status': 'initiate'}
    ← worker   {'status': 'progress', 'file', 'progress', 'totalFiles', 'completedFiles'}
    ← worker   {'status': 'ready', 'modelName', 'totalFiles'}
    ← worker   {'status': 'complete', 'translationId', 'output'}
    ← worker   {'status': 'error', 'error', 'translationId'?, 'category'?}

`translationId` is a unique request id generated per translate call, never
the text itself, so two concurrent requests for identical text stay apart.

A channel has three faces:
- send(message): fire a message at the worker
- on_message(callback, predicate) / messages(predicate): observe replies
- request(message, request_id, timeout): send and await the correlated reply

Terminating a channel rejects every pending request on it right away with
WorkerTerminated instead of leaving them to time out.
"""

import asyncio
import itertools
import logging
import multiprocessing
import queue
import threading
import uuid

from .config import TRANSLATION_TIMEOUT_SECONDS, TranslatorSettings
from .errors import (
    InvalidOutputShape,
    TranslationFailure,
    TranslationTimeout,
    WorkerCreationFailure,
    WorkerTerminated,
)
from .worker_process import worker_main

logger = logging.getLogger(__name__)

WORKER_CRASHED = 'Worker crashed'


class Subscription:
    """Handle returned by on_message(); close() stops delivery."""

    def __init__(self, channel, subscription_id, callback, predicate):
        self._channel = channel
        self.subscription_id = subscription_id
        self.callback = callback
        self.predicate = predicate

    def matches(self, message):
        return self.predicate is None or self.predicate(message)

    def close(self):
        self._channel._subscriptions.pop(self.subscription_id, None)


class BaseWorkerChannel:
    """
    Transport-independent part of a worker channel: subscriptions, request
    correlation, teardown. Subclasses implement _post() and _shutdown().

    dispatch() must be called on the event loop thread.
    """

    def __init__(self, model_name):
        self.model_name = model_name
        self.closed = False
        self._subscriptions = {}
        self._pending = {}
        self._ids = itertools.count(1)

    # --- Outgoing ---

    def send(self, message):
        if self.closed:
            raise WorkerTerminated(f"Worker for {self.model_name} has been terminated")
        self._post(message)

    async def request(self, message, request_id, timeout=TRANSLATION_TIMEOUT_SECONDS):
        """Send `message` and wait for the 'complete'/'error' reply carrying `request_id`."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending[request_id] = future
        try:
            self.send(message)
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise TranslationTimeout(f"Translation timeout after {timeout:g}s") from None
        finally:
            self._pending.pop(request_id, None)

    @property
    def pending_requests(self):
        return len(self._pending)

    # --- Incoming ---

    def on_message(self, callback, predicate=None):
        subscription = Subscription(self, next(self._ids), callback, predicate)
        self._subscriptions[subscription.subscription_id] = subscription
        return subscription

    async def messages(self, predicate=None):
        """Async stream of incoming messages that satisfy `predicate`."""
        inbox = asyncio.Queue()
        subscription = self.on_message(inbox.put_nowait, predicate)
        try:
            while True:
                yield await inbox.get()
        finally:
            subscription.close()

    def dispatch(self, message):
        if self.closed or not isinstance(message, dict):
            return

        request_id = message.get('translationId')
        if request_id is not None and message.get('status') in ('complete', 'error'):
            future = self._pending.pop(request_id, None)
            if future is not None and not future.done():
                if message['status'] == 'complete':
                    future.set_result(message)
                else:
                    future.set_exception(TranslationFailure(message.get('error') or 'Translation failed'))

        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(message):
                continue
            try:
                subscription.callback(message)
            except Exception:
                logger.exception("Worker message handler failed for %s", self.model_name)

    # --- Teardown ---

    def terminate(self):
        if self.closed:
            return
        self.closed = True

        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                future.set_exception(WorkerTerminated(f"Worker for {self.model_name} was terminated"))
        if pending:
            logger.debug("Rejected %d pending requests on %s", len(pending), self.model_name)

        self._subscriptions.clear()
        self._shutdown()

    def _post(self, message):
        raise NotImplementedError

    def _shutdown(self):
        pass


class ProcessWorkerChannel(BaseWorkerChannel):
    """
    Channel backed by a spawned worker process and two multiprocessing queues.

    A daemon reader thread blocks on the outbox and hands each message to the
    event loop with call_soon_threadsafe. If the process dies without saying
    so, the reader posts a 'Worker crashed' error on its behalf.
    """

    def __init__(self, model_name, settings=None, loop=None):
        super().__init__(model_name)
        self.settings = settings if settings is not None else TranslatorSettings()
        self._loop = loop or asyncio.get_running_loop()

        context = multiprocessing.get_context('spawn')
        self._inbox = context.Queue()
        self._outbox = context.Queue()
        self._process = context.Process(
            target=worker_main,
            args=(self._inbox, self._outbox, self.settings.device,
                  self.settings.max_length, self.settings.num_beams),
            name=f"TranslationWorker[{model_name}]",
            daemon=True,
        )
        self._stop_reader = threading.Event()
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"TranslationWorkerReader[{model_name}]",
            daemon=True,
        )

    @classmethod
    def spawn(cls, model_name, settings=None):
        """Worker factory used by the orchestrator: create and start a channel."""
        channel = cls(model_name, settings=settings)
        channel.start()
        return channel

    def start(self):
        try:
            self._process.start()
        except (OSError, RuntimeError, ValueError) as e:
            raise WorkerCreationFailure(str(e)) from e
        self._reader.start()
        logger.info("Started worker process %s (pid %s)", self._process.name, self._process.pid)

    def _post(self, message):
        self._inbox.put(message)

    def _read_loop(self):
        while not self._stop_reader.is_set():
            try:
                message = self._outbox.get(timeout=self.settings.poll_interval)
            except queue.Empty:
                if self._process.is_alive() or self._stop_reader.is_set():
                    continue
                logger.error("Worker process %s exited with code %s",
                             self._process.name, self._process.exitcode)
                message = {'status': 'error', 'error': WORKER_CRASHED}
                self._stop_reader.set()
            except (EOFError, OSError):
                break

            try:
                self._loop.call_soon_threadsafe(self.dispatch, message)
            except RuntimeError:
                # event loop already closed
                break

    def _shutdown(self):
        self._stop_reader.set()
        try:
            self._inbox.put_nowait(None)
        except (ValueError, OSError):
            pass

        # Never started (start() failed): nothing to join
        if self._process.pid is not None:
            self._process.join(self.settings.join_timeout)
            if self._process.is_alive():
                logger.warning("Worker process %s did not stop, terminating", self._process.name)
                self._process.terminate()
                self._process.join(self.settings.join_timeout)

        if self._reader.is_alive() and self._reader is not threading.current_thread():
            self._reader.join(self.settings.join_timeout)
        self._inbox.cancel_join_thread()
        self._outbox.cancel_join_thread()
        logger.info("Terminated worker process %s", self._process.name)


def extract_translation_text(output):
    """
    Pull the translated string out of a 'complete' payload.

    Accepts a list whose first element has 'translation_text', or a dict with
    'translation_text'. Anything else raises InvalidOutputShape.
    """
    if isinstance(output, (list, tuple)) and output:
        first = output[0]
        if isinstance(first, dict) and isinstance(first.get('translation_text'), str):
            return first['translation_text']
    elif isinstance(output, dict) and 'translation_text' in output:
        return output['translation_text']
    raise InvalidOutputShape('Invalid translation output')


async def request_translation(channel, text, target_language, timeout=TRANSLATION_TIMEOUT_SECONDS, request_id=None):
    """Run one translate round-trip on `channel` and return the translated text."""
    request_id = request_id or uuid.uuid4().hex
    reply = await channel.request(
        {
            'action': 'translate',
            'text': text,
            'translationId': request_id,
            'targetLanguage': target_language,
        },
        request_id,
        timeout,
    )
    return extract_translation_text(reply.get('output'))
