"""gitstate repository sessions.

A session is the operation API for one workspace: it serializes mutations,
keeps an immutable snapshot of the repository state, and notifies
subscribers after every change.

Classes:
    RepositorySession: Serialized operation API over one working directory.
    SessionRegistry: One session per workspace.
    OperationSerializer: FIFO execution lane with a bounded queue.
    ChangeNotifier: Append-only event log with fan-out.

Example:
    >>> from gitstate.session import RepositorySession
    >>> async with await RepositorySession.open(".") as session:
    ...     status = session.get_status()
"""

from ._models import ChangeEvent, EventName, SerializerState, SessionSnapshot
from ._notifier import ChangeNotifier, EventCallback, Subscription
from ._registry import SessionRegistry, workspace_key
from ._serializer import OperationSerializer
from ._session import RepositorySession

__all__ = [
    "ChangeEvent",
    "ChangeNotifier",
    "EventCallback",
    "EventName",
    "OperationSerializer",
    "RepositorySession",
    "SerializerState",
    "SessionRegistry",
    "SessionSnapshot",
    "Subscription",
    "workspace_key",
]
