"""
Error types raised by the MediTrack data layer.

Routes never build error payloads by hand: they let these propagate and the
handlers registered in ``app.create_app`` turn them into JSON responses.
"""


class MediTrackError(Exception):
    """Base class for every error the service raises on purpose."""

    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message}


class NotFound(MediTrackError):
    status_code = 404

    def __init__(self, entity: str, record_id):
        super().__init__(f'{entity.capitalize()} {record_id} not found')
        self.entity = entity
        self.record_id = record_id


class ValidationError(MediTrackError):
    """A draft or patch broke a form constraint. Never sent to a store."""

    status_code = 400

    def __init__(self, fields: dict):
        super().__init__('Please fix the errors in the form')
        self.fields = fields

    def to_dict(self) -> dict:
        return {'error': self.message, 'fields': self.fields}


class RemoteFailure(MediTrackError):
    """The backing store reported ``success: false`` or could not be reached."""

    status_code = 502

    def to_dict(self) -> dict:
        return {'error': self.message, 'retry': True}


class PartialBatchFailure(RemoteFailure):
    """Some records of a bulk call failed; the whole call counts as failed."""

    def __init__(self, message: str, failed: list):
        super().__init__(message)
        self.failed = failed


class CollectionLoadError(RemoteFailure):
    """One or more collections of a fan-out load failed."""

    status_code = 503

    def __init__(self, failures: dict, screen: str = ''):
        if screen:
            message = f'Failed to load {screen} data. Please try again.'
        else:
            message = f"Failed to load {', '.join(sorted(failures))}"
        super().__init__(message)
        self.failures = failures
        self.screen = screen


class AuthenticationRequired(MediTrackError):
    status_code = 401

    def __init__(self):
        super().__init__('Authentication required')
