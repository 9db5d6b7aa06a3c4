"""Match-control core: state store, team ledger, round sequencer and timers.

Nothing in here imports Flask. HTTP routes, socket handlers and the interop
gateway reach the core through the `Board` kept on the application.
"""

from .board import Board

__all__ = ['Board']
