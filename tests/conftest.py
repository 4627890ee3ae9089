import asyncio

import pytest

from live_translation.bridge import BaseWorkerChannel


class FakeWorkerChannel(BaseWorkerChannel):
    """In-memory worker channel: records what is sent, lets tests play the worker."""

    def __init__(self, model_name):
        super().__init__(model_name)
        self.sent = []
        self.terminated = False

    def _post(self, message):
        self.sent.append(message)

    def _shutdown(self):
        self.terminated = True

    def emit(self, message):
        self.dispatch(message)

    def sent_actions(self, action):
        return [message for message in self.sent if message.get('action') == action]

    def answer_translations(self, translate):
        """Reply 'complete' to every translate request not answered yet."""
        for message in self.sent_actions('translate'):
            if message['translationId'] in self._pending:
                self.emit({
                    'status': 'complete',
                    'translationId': message['translationId'],
                    'output': [{'translation_text': translate(message['text'])}],
                })


class FakeWorkerFactory:
    def __init__(self):
        self.channels = []
        self.fail_with = None

    def __call__(self, model_id):
        if self.fail_with is not None:
            raise self.fail_with
        channel = FakeWorkerChannel(model_id)
        self.channels.append(channel)
        return channel

    @property
    def last(self):
        return self.channels[-1]


@pytest.fixture
def worker_factory():
    return FakeWorkerFactory()


async def settle(rounds=5):
    """Let scheduled callbacks and background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
