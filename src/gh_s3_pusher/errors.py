"""
Pipeline error taxonomy.

Every failure is terminal for the invocation and carries the stage that failed
plus the underlying cause.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for stage failures reported to the invoking framework."""

    stage = "PipelineError"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)

    @property
    def reason(self) -> str:
        """Human readable ``"<Stage>: <cause>"`` string."""
        return f"{self.stage}: {self}"


class CredentialUnavailable(PipelineError):
    """The GitHub token could not be decrypted or is not configured."""

    stage = "CredentialUnavailable"

    @classmethod
    def not_configured(cls) -> CredentialUnavailable:
        return cls("no encrypted token configured (GIT_TOKEN)")


class PullRequestLookupFailed(PipelineError):
    stage = "PullRequestLookupFailed"


class ArchiveFetchFailed(PipelineError):
    stage = "ArchiveFetchFailed"


class StagingReadFailed(PipelineError):
    stage = "StagingReadFailed"


class PublishFailed(PipelineError):
    """The object store rejected the write."""

    stage = "PublishFailed"

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None,
        key: str | None,
        cause: BaseException | None = None,
    ) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(message, cause=cause)


class Timeout(PipelineError):
    """The invocation deadline expired before the pipeline finished."""

    stage = "Timeout"

    @classmethod
    def after(cls, seconds: float) -> Timeout:
        return cls(f"deadline of {seconds:.1f}s expired")


class InvocationFailed(RuntimeError):
    """Raised out of the Lambda handler so the runtime records a failed invocation."""
