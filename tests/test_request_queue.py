import asyncio

from live_translation.request_queue import RequestQueue


def test_enqueue_is_idempotent():
    queue = RequestQueue()
    assert queue.enqueue('hello', 'es', 'r1')
    assert not queue.enqueue('hello', 'es', 'r1')
    assert queue.enqueue('hello', 'es', 'r2')
    assert len(queue) == 2


def test_bound_drops_oldest():
    queue = RequestQueue(max_items=2)
    queue.enqueue('one', 'es', 'r1')
    queue.enqueue('two', 'es', 'r2')
    queue.enqueue('three', 'es', 'r3')
    assert [item.request_id for item in queue.items()] == ['r2', 'r3']


def test_drain_only_touches_ready_language_in_order():
    queue = RequestQueue()
    queue.enqueue('one', 'es', 'r1')
    queue.enqueue('un', 'fr', 'r2')
    queue.enqueue('two', 'es', 'r3')

    calls = []
    notified = []

    async def translate(text, language):
        calls.append((text, language))
        return f"{language}:{text}"

    count = asyncio.run(queue.drain('es', translate, lambda rid, text: notified.append((rid, text))))

    assert count == 2
    assert calls == [('one', 'es'), ('two', 'es')]
    assert notified == [('r1', 'es:one'), ('r3', 'es:two')]
    assert [item.request_id for item in queue.items()] == ['r2']


def test_drain_reports_failure_marker_and_continues():
    queue = RequestQueue()
    queue.enqueue('bad', 'es', 'r1')
    queue.enqueue('good', 'es', 'r2')
    notified = []

    async def translate(text, language):
        if text == 'bad':
            raise RuntimeError('model exploded')
        return 'bien'

    asyncio.run(queue.drain('es', translate, lambda rid, text: notified.append((rid, text))))

    assert notified == [('r1', '[Translation Error]'), ('r2', 'bien')]


def test_drain_survives_broken_callback():
    queue = RequestQueue()
    queue.enqueue('a', 'es', 'r1')
    queue.enqueue('b', 'es', 'r2')
    seen = []

    def notify(request_id, text):
        seen.append(request_id)
        raise ValueError('ui gone')

    async def translate(text, language):
        return text

    assert asyncio.run(queue.drain('es', translate, notify)) == 2
    assert seen == ['r1', 'r2']


def test_clear_by_language():
    queue = RequestQueue()
    queue.enqueue('a', 'es', 'r1')
    queue.enqueue('b', 'fr', 'r2')
    assert queue.clear('es') == 1
    assert [item.target_language for item in queue.items()] == ['fr']
    assert queue.clear() == 1
    assert len(queue) == 0
