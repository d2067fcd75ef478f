"""
Match pipeline exceptions.

Routes map these onto HTTP status codes; everything else that can go wrong
in the pipeline is a degradation and is absorbed where it happens.
"""


class MatchError(Exception):
    """Base class for match pipeline errors."""

    status_code = 500


class MatchValidationError(MatchError):
    """Malformed request parameters or preference id."""

    status_code = 400


class PreferenceNotFoundError(MatchError):
    """Preference id does not resolve."""

    status_code = 404

    def __init__(self, preference_id: str):
        super().__init__(f"Preference not found: {preference_id}")
        self.preference_id = preference_id


class UpstreamError(MatchError):
    """Listing catalog or preference store failed."""

    status_code = 500
