from live_translation.progress import ProgressAggregator


def test_attempt_lifecycle_statuses():
    progress = ProgressAggregator()
    assert progress.snapshot().status == 'Idle'

    progress.begin_attempt('English→Spanish Model')
    assert progress.snapshot().status == 'Initializing English→Spanish Model'

    progress.initiate('English→Spanish Model')
    assert progress.snapshot().status == 'Starting English→Spanish Model'

    progress.update_file('config.json', 100, total_files=2)
    state = progress.snapshot()
    assert state.status == 'Loading English→Spanish Model (1/2 files)'
    assert state.overall_progress == 100

    progress.mark_ready()
    state = progress.snapshot()
    assert state.status == 'Ready!'
    assert state.overall_progress == 100
    assert all(entry.progress == 100 for entry in state.files.values())


def test_overall_is_mean_and_never_regresses():
    progress = ProgressAggregator()
    progress.initiate('m')

    progress.update_file('a', 50, total_files=2)
    progress.update_file('b', 0, total_files=2)
    # mean(50, 0) = 25 would lower the overall value from 50
    assert progress.snapshot().overall_progress == 50

    progress.update_file('b', 100, total_files=2)
    assert progress.snapshot().overall_progress == 75


def test_overall_is_mean_of_known_files_without_total():
    progress = ProgressAggregator()
    progress.initiate('m')

    progress.update_file('a.json', 10)
    progress.update_file('b.bin', 90)
    state = progress.snapshot()
    assert state.overall_progress == 50
    assert state.status == 'Loading m (2/2 files)'


def test_file_progress_never_regresses():
    progress = ProgressAggregator()
    progress.initiate('m')

    seen = []
    for value in (10, 40, 30, 80, 79, 100):
        progress.update_file('weights.bin', value, total_files=1)
        seen.append(progress.snapshot().files['weights.bin'].progress)

    assert seen == [10, 40, 40, 80, 80, 100]


def test_values_are_clamped():
    progress = ProgressAggregator()
    progress.update_file('a', 250, total_files=1)
    assert progress.snapshot().files['a'].progress == 100
    progress.reset()
    progress.update_file('a', -5, total_files=1)
    assert progress.snapshot().files['a'].progress == 0


def test_raw_value_drives_overall_before_any_file_is_known():
    progress = ProgressAggregator()
    progress.update_file(None, 42.4)
    state = progress.snapshot()
    assert state.overall_progress == 42
    assert state.files == {}


def test_error_keeps_overall_progress():
    progress = ProgressAggregator()
    progress.update_file('a', 60, total_files=1)
    progress.mark_error()
    state = progress.snapshot()
    assert state.status == 'Error loading model'
    assert state.overall_progress == 60


def test_subscribers_receive_snapshots_and_failures_are_isolated():
    progress = ProgressAggregator()
    received = []

    def broken(state):
        raise RuntimeError('boom')

    progress.subscribe(broken)
    subscription_id = progress.subscribe(received.append)

    progress.begin_attempt('m')
    assert received[-1].status == 'Initializing m'

    # Snapshots are copies
    received[-1].status = 'changed'
    assert progress.snapshot().status == 'Initializing m'

    progress.unsubscribe(subscription_id)
    progress.mark_error()
    assert received[-1].status == 'changed'
    assert progress.subscriber_count == 1


def test_to_dict_uses_camel_case():
    progress = ProgressAggregator()
    progress.begin_attempt('m')
    progress.update_file('a', 10, total_files=1)
    data = progress.snapshot().to_dict()
    assert data['overallProgress'] == 10
    assert data['modelName'] == 'm'
    assert data['files']['a']['progress'] == 10
