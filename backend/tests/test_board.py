from improvboard.services.defaults import local_remote_control, stopped_timer


def test_reset_all_keeps_library_and_team_identity(board, fake_clock):
    board.templates.initialize_default_templates()
    board.templates.create_playlist({'name': 'Saturday', 'rounds': ['musical-duet']})
    board.ledger.update_team('team1', {'name': 'Owls'})
    board.ledger.set_scoring_mode('manual')
    board.ledger.update_score('team1', 'increment')
    board.clock.start(60)
    board.remote.set_lock(True)

    assert board.reset_all()
    state = board.get_state()
    assert state['team1']['name'] == 'Owls'
    assert state['team1']['score'] == 0
    assert state['scoringMode'] == 'round'
    assert state['timer'] == stopped_timer()
    assert state['remoteControl'] == local_remote_control()
    assert len(state['rounds']['templates']) == 8
    assert len(state['rounds']['playlists']) == 1


def test_reset_all_can_drop_team_names(board):
    board.ledger.update_team('team2', {'name': 'Foxes'})
    board.reset_all(keep_team_names=False)
    assert board.get_state()['team2']['name'] == 'Red Team'


def test_backups_need_a_repository(board):
    assert not board.create_backup('x')
    assert not board.restore_backup(1)
    assert board.list_backups().value == []
