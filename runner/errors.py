"""Exception types raised by the runner core."""


class RunnerError(Exception):
    """Base class for all runner errors."""


class TaskLoadError(RunnerError):
    """A task unit could not be imported from its source."""


class TaskValidationError(RunnerError):
    """A task unit loaded but does not have a valid shape.

    The message is the human-readable rejection reason.
    """


class TaskNotFoundError(RunnerError, LookupError):
    """No task with the requested id is registered."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Unknown task: {task_id}")
        self.task_id = task_id


class CronParseError(RunnerError, ValueError):
    """A cron expression is syntactically invalid."""
