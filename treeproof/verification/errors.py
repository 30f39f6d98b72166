"""Error taxonomy for the verification pipeline.

Only ValidationError and UpstreamError are exceptional failures. Duplicate and policy
rejections are normal pipeline outcomes and are returned as Verdict values.
"""


class ValidationError(ValueError):
    """Missing or malformed input at the intake boundary. Caller's fault; not retried."""


class UpstreamError(RuntimeError):
    """The labeling collaborator failed (transport, auth, malformed response, timeout).

    Potentially transient; callers may retry with backoff. Never retried inside the pipeline.
    """


class CredentialsError(UpstreamError):
    """Labeling credentials are missing or rejected."""


class LabelingError(UpstreamError):
    """Transport failure, non-success status, or malformed labeling response."""


class DuplicateKeyError(Exception):
    """The fingerprint store rejected an insert because the fingerprint already exists."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"Fingerprint already stored: {fingerprint}")
        self.fingerprint = fingerprint
