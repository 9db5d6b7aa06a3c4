from improvboard.services.store import Broadcaster, StateStore, STATE_EVENT


def test_reads_are_independent_copies():
    store = StateStore()
    state = store.get_state()
    state['team1']['score'] = 99
    state['rounds']['history'].append({'number': 1})
    fresh = store.get_state()
    assert fresh['team1']['score'] == 0
    assert fresh['rounds']['history'] == []


def test_team_fields_merge_without_dropping_siblings():
    store = StateStore()
    store.update({'team1': {'name': 'Owls'}})
    team = store.get_state()['team1']
    assert team['name'] == 'Owls'
    assert team['color'] == '#3b82f6'
    assert team['penalties'] == {'major': 0, 'minor': 0}


def test_round_keys_merge_but_each_key_is_replaced():
    store = StateStore()
    store.update({'rounds': {'gameStatus': 'live'}})
    store.update({'rounds': {'current': {'number': 2, 'type': 'musical'}}})
    rounds = store.get_state()['rounds']
    assert rounds['gameStatus'] == 'live'
    assert rounds['settings']['showTheme'] is True
    # current is replaced wholesale, not merged with the placeholder
    assert rounds['current'] == {'number': 2, 'type': 'musical'}


def test_update_rejects_non_mapping():
    store = StateStore()
    assert store.update(['nope']) is None


def test_every_write_broadcasts_full_snapshot_in_order():
    seen = []
    store = StateStore()
    store.broadcaster.subscribe(lambda event, payload, room: seen.append((event, payload)))
    store.update({'scoringMode': 'manual'})
    store.update({'team2': {'score': 3}})
    assert [e for e, _ in seen] == [STATE_EVENT, STATE_EVENT]
    assert seen[0][1]['scoringMode'] == 'manual'
    assert seen[0][1]['team2']['score'] == 0
    assert seen[1][1]['team2']['score'] == 3
    assert 'rounds' in seen[1][1]


def test_persist_failure_does_not_roll_back_or_block():
    def broken(snapshot):
        raise IOError('disk full')

    store = StateStore(persist=broken)
    store.update({'scoringMode': 'manual'})
    assert store.get_state()['scoringMode'] == 'manual'


def test_persist_receives_snapshot_copy():
    written = []
    store = StateStore(persist=written.append)
    store.update({'team1': {'score': 4}})
    assert written[-1]['team1']['score'] == 4
    written[-1]['team1']['score'] = 100
    assert store.get_state()['team1']['score'] == 4


def test_failing_subscriber_does_not_stop_others():
    broadcaster = Broadcaster()
    got = []

    def bad(event, payload, room):
        raise RuntimeError('socket gone')

    broadcaster.subscribe(bad)
    broadcaster.subscribe(lambda event, payload, room: got.append((event, room)))
    broadcaster.publish('timerUpdate', {}, 'match:1')
    assert got == [('timerUpdate', 'match:1')]


def test_unsubscribe():
    broadcaster = Broadcaster()
    got = []
    unsubscribe = broadcaster.subscribe(lambda e, p, r: got.append(e))
    unsubscribe()
    broadcaster.publish('x', {})
    assert got == []


def test_load_fills_missing_keys_without_broadcast():
    seen = []
    store = StateStore()
    store.broadcaster.subscribe(lambda e, p, r: seen.append(e))
    assert store.load({'team1': {'id': 'team1', 'name': 'Saved', 'color': '#000000', 'score': 7,
                                 'penalties': {'major': 1, 'minor': 0}}})
    state = store.get_state()
    assert state['team1']['name'] == 'Saved'
    assert state['timer']['status'] == 'stopped'
    assert seen == []


class _Deferred:
    """Spawn that queues tasks until the test runs them."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args):
        self.tasks.append((fn, args))

    def run_all(self):
        tasks, self.tasks = self.tasks, []
        for fn, args in tasks:
            fn(*args)


def test_pending_writes_coalesce_into_latest_snapshot():
    written = []
    spawn = _Deferred()
    store = StateStore(persist=written.append, spawn=spawn)
    for score in (1, 2, 3):
        store.update({'team1': {'score': score}})
    assert len(spawn.tasks) == 1
    spawn.run_all()
    assert [s['team1']['score'] for s in written] == [3]

    store.update({'team1': {'score': 4}})
    assert len(spawn.tasks) == 1
    spawn.run_all()
    assert [s['team1']['score'] for s in written] == [3, 4]


def test_write_during_persist_is_picked_up_by_same_worker():
    written = []
    spawn = _Deferred()

    def slow_persist(snapshot):
        written.append(snapshot['team1']['score'])
        if len(written) == 1:
            store.update({'team1': {'score': 9}})

    store = StateStore(persist=slow_persist, spawn=spawn)
    store.update({'team1': {'score': 5}})
    spawn.run_all()
    assert written == [5, 9]
    assert spawn.tasks == []


def test_failed_schedule_is_retried_on_next_write():
    written = []
    calls = []

    def flaky_spawn(fn, *args):
        calls.append(fn)
        if len(calls) == 1:
            raise RuntimeError('no worker')
        fn(*args)

    store = StateStore(persist=written.append, spawn=flaky_spawn)
    store.update({'team1': {'score': 1}})
    assert written == []
    store.update({'team1': {'score': 2}})
    assert [s['team1']['score'] for s in written] == [2]
