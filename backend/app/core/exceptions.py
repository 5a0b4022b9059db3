"""
Exceptions for the crawl-and-audit pipeline.

Every stage of the pipeline raises a subclass of ``AuditPipelineError`` so
callers can catch the whole family at the outer boundary (Celery task, HTTP
router) and record a human-readable ``message`` on the failed job or crawl.
"""


class AuditPipelineError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description (stored in error_message)
        cause: Underlying exception, if any
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


# =============================================================================
# Input and quota
# =============================================================================


class ValidationError(AuditPipelineError):
    """Raised when a crawl or job request carries invalid input."""

    pass


class InsufficientCredits(AuditPipelineError):
    """Raised when a metered profile cannot cover the requested page budget."""

    def __init__(self, needed: int, available: int):
        super().__init__(
            f"Insufficient credits. You need {needed} credits but have {available}"
        )
        self.needed = needed
        self.available = available


# =============================================================================
# Stage failures
# =============================================================================


class FetchFailure(AuditPipelineError):
    """Raised by a page fetcher when a single URL cannot be retrieved.

    Non-fatal for a crawl: the engine logs it and moves to the next URL.
    """

    def __init__(self, url: str, message: str, cause: Exception | None = None):
        super().__init__(message, cause)
        self.url = url


class PersistenceFailure(AuditPipelineError):
    """Raised when a database read or write fails."""

    pass


class UnsupportedJobType(AuditPipelineError):
    """Raised when no handler is registered for a job type."""

    def __init__(self, job_type: str):
        super().__init__(f"Unknown job type: {job_type}")
        self.job_type = job_type


class NoPagesFound(AuditPipelineError):
    """Raised when analysis is requested for a crawl with no stored pages."""

    def __init__(self, crawl_job_id: object):
        super().__init__("No pages found for analysis")
        self.crawl_job_id = crawl_job_id


# =============================================================================
# Lookup failures
# =============================================================================


class JobNotFound(AuditPipelineError):
    """Raised when a Job id does not resolve to a row."""

    def __init__(self, job_id: object):
        super().__init__("Job not found")
        self.job_id = job_id


class CrawlJobNotFound(AuditPipelineError):
    """Raised when a CrawlJob id does not resolve to a row."""

    def __init__(self, crawl_job_id: object):
        super().__init__("Crawl job not found")
        self.crawl_job_id = crawl_job_id


class ProfileNotFound(AuditPipelineError):
    """Raised when the caller's profile (or the project's owner) is missing."""

    def __init__(self, profile_id: object):
        super().__init__("Profile not found")
        self.profile_id = profile_id


# =============================================================================
# Cancellation and deadlines
# =============================================================================


class JobCancelled(AuditPipelineError):
    """Raised at a cooperative checkpoint once cancellation was requested."""

    def __init__(self, message: str = "Job was cancelled"):
        super().__init__(message)


class JobDeadlineExceeded(AuditPipelineError):
    """Raised when a job or a batch item runs past its deadline."""

    def __init__(self, seconds: float, scope: str = "job"):
        super().__init__(f"The {scope} exceeded its deadline of {seconds:g} seconds")
        self.seconds = seconds
        self.scope = scope


# =============================================================================
# External research collaborators
# =============================================================================


class ResearchDataError(AuditPipelineError):
    """Raised when the keyword/backlink research vendor call fails."""

    pass


class EmbeddingFailure(AuditPipelineError):
    """Raised when keyword embeddings cannot be generated."""

    pass


# =============================================================================
# Work hand-off
# =============================================================================


class TaskSubmissionFailed(AuditPipelineError):
    """Raised when a crawl or job cannot be handed to the task broker."""

    pass
