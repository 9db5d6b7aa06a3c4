import os
from datetime import datetime
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, select_autoescape


class ReportRenderer:
    """Writes the end-of-game HTML report for a finished snapshot."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.env = Environment(
            loader=PackageLoader('improvboard', 'templates'),
            autoescape=select_autoescape(['html']),
        )

    def render(self, snapshot: Dict[str, Any]) -> str:
        now = datetime.utcnow()
        return self.env.get_template('report.html').render(
            team1=snapshot['team1'],
            team2=snapshot['team2'],
            history=snapshot['rounds'].get('history') or [],
            generated_at=now.strftime('%Y-%m-%d %H:%M:%S UTC'),
        )

    def __call__(self, snapshot: Dict[str, Any]) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        filename = f"report-{datetime.utcnow().strftime('%Y%m%d-%H%M%S')}.html"
        path = os.path.join(self.output_dir, filename)
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(self.render(snapshot))
        return path
