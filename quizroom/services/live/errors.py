"""Error taxonomy for live session intents.

Every error here is requester-directed: the coordinator turns it into an
``operation_error`` event for the connection that sent the intent and
never broadcasts it to the room.
"""


class LiveSessionError(Exception):
    code = 'error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message}


class NotFound(LiveSessionError):
    code = 'not_found'


class Unauthorized(LiveSessionError):
    code = 'unauthorized'


class InvalidState(LiveSessionError):
    code = 'invalid_state'


class Rejected(LiveSessionError):
    code = 'rejected'


class StoreFailure(LiveSessionError):
    code = 'store_failure'
