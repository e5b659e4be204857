"""
Exception types raised inside the service and converted at its edges
"""


class DeadlinesError(Exception):
    """Base class for errors raised by this package"""


class UnknownTaskError(DeadlinesError):
    """A delivered queue payload names a task type this service does not handle"""

    def __init__(self, task_type):
        self.task_type = task_type
        super().__init__(f"Unknown task type: {task_type}")


class InvalidSignatureError(DeadlinesError):
    """The queue webhook signature did not verify"""
