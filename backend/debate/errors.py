"""Error taxonomy shared by the HTTP and Socket.IO layers.

Every error carries the HTTP status the admission API answers with and a
short ``kind`` string that socket clients receive in ``error`` events.
"""


class LobbyError(Exception):
    status_code = 400
    kind = 'error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.__doc__ or self.kind)
        self.message = message or str(self.args[0])

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class ValidationError(LobbyError):
    """Invalid or missing request data"""
    status_code = 400
    kind = 'validation'


class NotFoundError(LobbyError):
    """Lobby not found"""
    status_code = 404
    kind = 'not_found'


class AlreadyPresentError(LobbyError):
    """Username already taken in this lobby"""
    status_code = 409
    kind = 'already_taken'


class AuthorizationError(LobbyError):
    """Only the host may do that"""
    status_code = 403
    kind = 'forbidden'


class StaleReferenceError(LobbyError):
    """The lobby or game no longer exists"""
    status_code = 410
    kind = 'stale'
