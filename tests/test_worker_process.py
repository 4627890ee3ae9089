import queue

import pytest

from live_translation.progress import ProgressAggregator
from live_translation.worker_process import FileProgressTracker, run_worker


class StubManager:
    def __init__(self, model_name, files=('config.json', 'model.safetensors'), fail_with=None):
        self.model_name = model_name
        self.files = files
        self.fail_with = fail_with
        self.loaded = False
        self.load_calls = 0

    @property
    def is_loaded(self):
        return self.loaded

    def load(self, progress_callback=None):
        self.load_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        for name in self.files:
            progress_callback(name, 0)
        for name in self.files:
            progress_callback(name, 100)
        self.loaded = True

    def translate(self, text):
        if text == 'explode':
            raise RuntimeError('generation failed')
        return [{'translation_text': text.upper()}]


def run(messages, manager_factory):
    inbox = queue.Queue()
    outbox = queue.Queue()
    for message in messages:
        inbox.put(message)
    inbox.put(None)
    run_worker(inbox, outbox, manager_factory)

    replies = []
    while not outbox.empty():
        replies.append(outbox.get())
    return replies


def test_initialize_reports_progress_then_ready():
    replies = run([{'action': 'initialize', 'modelName': 'opus-es'}], StubManager)

    statuses = [reply['status'] for reply in replies]
    assert statuses[0] == 'initiate'
    assert statuses[-1] == 'ready'
    assert replies[-1] == {'status': 'ready', 'modelName': 'opus-es', 'totalFiles': 2}

    last_progress = [reply for reply in replies if reply['status'] == 'progress'][-1]
    assert last_progress['totalFiles'] == 2
    assert last_progress['completedFiles'] == 2


def test_repeated_initialize_does_not_reload():
    managers = []

    def factory(name):
        manager = StubManager(name)
        managers.append(manager)
        return manager

    replies = run([
        {'action': 'initialize', 'modelName': 'opus-es'},
        {'action': 'initialize', 'modelName': 'opus-es'},
    ], factory)

    assert len(managers) == 1
    assert replies[-1] == {'status': 'ready', 'modelName': 'opus-es', 'totalFiles': 0}


def test_load_failure_is_classified():
    replies = run(
        [{'action': 'initialize', 'modelName': 'opus-es'}],
        lambda name: StubManager(name, fail_with=ConnectionError('Failed to fetch config.json')),
    )
    assert replies[-1] == {'status': 'error', 'error': 'Network connection failed', 'category': 'network'}


def test_translate_round_trip_and_errors():
    replies = run([
        {'action': 'translate', 'text': 'too early', 'translationId': 't0'},
        {'action': 'initialize', 'modelName': 'opus-es'},
        {'action': 'translate', 'text': 'hello', 'translationId': 't1', 'targetLanguage': 'es'},
        {'action': 'translate', 'text': 'explode', 'translationId': 't2', 'targetLanguage': 'es'},
    ], StubManager)

    by_id = {reply['translationId']: reply for reply in replies if 'translationId' in reply}
    assert by_id['t0']['status'] == 'error'
    assert by_id['t0']['error'] == 'Model not ready'
    assert by_id['t1'] == {'status': 'complete', 'translationId': 't1', 'output': [{'translation_text': 'HELLO'}]}
    assert by_id['t2']['status'] == 'error'


def test_unknown_action_is_ignored():
    assert run([{'action': 'dance'}], StubManager) == []


def test_tracker_never_posts_regressing_values():
    outbox = queue.Queue()
    tracker = FileProgressTracker(outbox)
    tracker.report('a', 50)
    tracker.report('a', 20)
    tracker.report('a', 100)

    posted = []
    while not outbox.empty():
        posted.append(outbox.get()['progress'])
    assert posted == [50, 100]
    assert tracker.completed_files == 1


def overall_progress_seen(replies):
    aggregator = ProgressAggregator()
    aggregator.initiate('m')
    seen = []
    for reply in replies:
        if reply['status'] == 'progress':
            aggregator.update_file(reply['file'], reply['progress'], reply['totalFiles'])
            seen.append(aggregator.snapshot().overall_progress)
    return seen


def test_overall_stays_below_100_until_last_file():
    files = ('config.json', 'source.spm', 'target.spm', 'model.safetensors')
    replies = run([{'action': 'initialize', 'modelName': 'opus-es'}],
                  lambda name: StubManager(name, files=files))

    assert overall_progress_seen(replies) == [0, 0, 0, 0, 25, 50, 75, 100]


def test_opus_manager_announces_every_file_before_downloading(monkeypatch):
    manager_opus = pytest.importorskip('live_translation.manager_opus')
    repo_files = ['README.md', 'config.json', 'source.spm', 'target.spm',
                  'model.safetensors', 'pytorch_model.bin', 'tf_model.h5']
    downloaded = []

    monkeypatch.setattr(manager_opus, 'list_repo_files', lambda repo_id: repo_files)
    monkeypatch.setattr(manager_opus, 'hf_hub_download',
                        lambda repo_id, filename: downloaded.append(filename))
    monkeypatch.setattr(manager_opus, 'pipeline',
                        lambda task, model, device: (lambda text, **kwargs: [{'translation_text': text}]))

    replies = run([{'action': 'initialize', 'modelName': 'Helsinki-NLP/opus-mt-en-es'}],
                  manager_opus.OpusTranslationManager)

    assert downloaded == ['config.json', 'source.spm', 'target.spm', 'model.safetensors']
    assert overall_progress_seen(replies) == [0, 0, 0, 0, 25, 50, 75, 100]
    assert replies[-1] == {'status': 'ready', 'modelName': 'Helsinki-NLP/opus-mt-en-es', 'totalFiles': 4}
