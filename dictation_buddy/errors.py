"""
Exceptions raised inside the service layer.

None of these escape a public component boundary: extraction collapses them to
an empty list, chat to a fallback reply, assistant speech to a text-only reply.
"""


class DictationServiceError(Exception):
    """Base class for service-layer failures."""


class ServiceUnavailable(DictationServiceError):
    """No API key configured, so no remote backend can be reached."""


class MalformedResponse(DictationServiceError):
    """The model answered, but not in the shape we asked for."""
