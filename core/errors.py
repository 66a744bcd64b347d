"""Error types for automation loading and execution failures."""


class RunnerError(Exception):
    """Base error for the automation runner."""


class AutomationError(RunnerError):
    """Error tied to a single automation."""

    def __init__(self, automation_id: str, message: str):
        self.automation_id = automation_id
        super().__init__(f"Automation '{automation_id}': {message}")


class HandlerConfigError(AutomationError):
    """A handler-specific field is missing or has the wrong shape."""

    def __init__(self, automation_id: str, source_path: str, missing: list[str]):
        self.source_path = source_path
        self.missing = missing
        super().__init__(
            automation_id, f"missing {'/'.join(missing)} in {source_path}"
        )


class UnknownHandlerError(AutomationError):
    """No handler is registered for the automation's type."""

    def __init__(self, automation_id: str, automation_type: str, source_path: str):
        self.automation_type = automation_type
        self.source_path = source_path
        super().__init__(
            automation_id, f"unknown automation type '{automation_type}' ({source_path})"
        )
