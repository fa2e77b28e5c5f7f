"""Exception hierarchy shared by the webhook and analysis paths.

Every exception carries the HTTP status the interface layer answers with.
Inner modules raise these; the routers translate them into responses.
"""


class RepoLensError(Exception):
    """Base exception for the service."""

    status_code: int = 500


class WebhookError(RepoLensError):
    """A webhook delivery could not be authenticated."""


class WebhookConfigurationError(WebhookError):
    """Verification is required but no webhook secret is configured."""

    status_code = 500


class InvalidSignatureError(WebhookError):
    """The signature header does not match the computed digest."""

    status_code = 401


class MissingSignatureError(WebhookError):
    """Neither signature header was sent."""

    status_code = 401


class RemoteTreeError(RepoLensError):
    """The repository tree could not be resolved completely.

    Fatal to the analysis request; individual file fetch failures are not
    reported through this exception.
    """

    status_code = 500
