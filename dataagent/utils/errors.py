"""
Custom error classes for the data agent.

Recoverable failures (SQL execution errors, semantic mismatches, enrichment
timeouts) travel through the workflow state as reason strings. The classes
below are for failures that must leave the graph.
"""


class DataAgentError(Exception):
    """Base exception for data agent errors"""
    pass


class GraphConfigurationError(DataAgentError):
    """Invalid graph wiring: unknown node, missing entry point, undeclared route target"""
    pass


class StepLimitExceededError(GraphConfigurationError):
    """A run executed more steps than the configured ceiling"""

    def __init__(self, thread_id: str, limit: int):
        super().__init__(f"Run for thread {thread_id} exceeded the step ceiling of {limit}")
        self.thread_id = thread_id
        self.limit = limit


class SnapshotNotFoundError(DataAgentError):
    """Resume requested for a thread with no pending snapshot"""

    def __init__(self, thread_id: str):
        super().__init__(f"No suspended run to resume for thread {thread_id}")
        self.thread_id = thread_id


class SessionBusyError(DataAgentError):
    """A run is already streaming for this thread"""

    def __init__(self, thread_id: str):
        super().__init__(f"Thread {thread_id} already has an active run")
        self.thread_id = thread_id


class UpstreamUnavailableError(DataAgentError):
    """Model or knowledge store collaborator failed"""
    pass


class TransientToolError(DataAgentError):
    """Recoverable tool failure; nodes turn it into a retry reason"""
    pass


class SchemaAccessError(DataAgentError):
    """Relational schema introspection failed"""
    pass


class ExecutionError(DataAgentError):
    """Python analysis code could not be executed"""
    pass
