import os

from improvboard.services import Board
from improvboard.services.defaults import new_round_config
from improvboard.services.report import ReportRenderer


def test_report_written_on_finish(tmp_path):
    renderer = ReportRenderer(str(tmp_path))
    board = Board(report_renderer=renderer)
    board.ledger.update_team('team1', {'name': 'Les <Bleus>'})
    config = new_round_config('musical', 1)
    config['theme'] = 'Lighthouse'
    board.rounds.start_round(config)
    board.rounds.save_round_results({'points': {'team1': 3, 'team2': 2}, 'notes': 'encore'})
    board.rounds.finish_game()

    reports = os.listdir(tmp_path)
    assert len(reports) == 1
    assert reports[0].startswith('report-')
    html = (tmp_path / reports[0]).read_text(encoding='utf-8')
    assert 'Lighthouse' in html
    assert 'encore' in html
    assert 'Les &lt;Bleus&gt;' in html


def test_empty_history_renders_placeholder():
    board = Board()
    html = ReportRenderer('unused').render(board.get_state())
    assert 'No rounds played.' in html
