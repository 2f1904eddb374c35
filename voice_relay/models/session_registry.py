"""
Registry of live relay sessions.

The listener registers each relay session when a client connects and removes
it when either leg closes. The registry is only used for bookkeeping such as
the health endpoint's session count; sessions never reach into each other
through it.
"""


class SessionRegistry:
    """
    Tracks the relay sessions that are currently open.

    This class maintains a mapping from session id to the session object
    during the connection lifecycle.
    """

    def __init__(self):
        """Initialize an empty dictionary of active sessions."""
        self.active_sessions = {}

    def add_session(self, session_id: str, session) -> None:
        """
        Register a new session.

        Args:
            session_id: Correlation token of the session
            session: The relay session object
        """
        self.active_sessions[session_id] = session

    def remove_session(self, session_id: str) -> None:
        """
        Remove a session from the registry. Unknown ids are ignored.
        """
        self.active_sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self.active_sessions)
