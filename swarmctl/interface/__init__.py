"""Session layer for interactive swarmfs clients.

Renderers create a :class:`DaemonSession`, call its actions in response to
input and call :meth:`DaemonSession.poll` on every tick before painting.
"""

from swarmctl.interface.daemon_session import DaemonSession
from swarmctl.interface.fuzzy_filter import FuzzyFilter
from swarmctl.interface.jobs import JobDispatcher, OperationClass
from swarmctl.interface.list_view import ListView
from swarmctl.interface.selection import SelectionEngine
from swarmctl.interface.state import Area, SessionState

__all__ = [
    "Area",
    "DaemonSession",
    "FuzzyFilter",
    "JobDispatcher",
    "ListView",
    "OperationClass",
    "SelectionEngine",
    "SessionState",
]
