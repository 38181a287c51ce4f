"""Shared error types for the sandbox execution layer."""


class TaskboxError(Exception):
    """Base error for all taskbox failures."""


class SandboxError(TaskboxError):
    """A sandbox operation failed (creation, execution, or cleanup)."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Sandbox error" + (f": {detail}" if detail else ""))


class SandboxExistsError(SandboxError):
    """A live sandbox with the requested id is already registered."""

    def __init__(self, sandbox_id: str) -> None:
        self.sandbox_id = sandbox_id
        super().__init__(f"sandbox already exists: {sandbox_id}")


class SandboxPathError(SandboxError):
    """A path resolved outside the sandbox home directory."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"path escapes sandbox home: {path}")


class SandboxFileError(SandboxError):
    """A file operation inside the sandbox failed."""


class SandboxTimeoutError(SandboxError):
    """Command execution exceeded the configured timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Execution timed out after {timeout}s")


class ShellSessionError(TaskboxError):
    """A shell session could not be started or driven."""


class SessionNotActiveError(ShellSessionError):
    """Input was sent to a shell session that has already terminated."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Shell session is not active: {session_id}")


class BrowserError(TaskboxError):
    """A browser session operation failed."""


class BrowserNotActiveError(BrowserError):
    """An operation was attempted on a closed browser session."""

    def __init__(self, browser_id: str) -> None:
        self.browser_id = browser_id
        super().__init__(f"Browser session is not active: {browser_id}")


class CredentialNotFoundError(BrowserError):
    """No stored credential matches the requested domain."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"No credentials found for {domain}")


class CredentialStoreError(TaskboxError):
    """The encrypted credential file could not be written or decoded."""


class StepError(TaskboxError):
    """Base error for step execution."""


class StepValidationError(StepError):
    """A step descriptor or step plan failed validation."""


class StepExecutionError(StepError):
    """A validated step failed while running against a sandbox."""

    def __init__(self, step_type: str, detail: str = "") -> None:
        self.step_type = step_type
        self.detail = detail
        super().__init__(f"Step failed: {step_type}" + (f": {detail}" if detail else ""))
