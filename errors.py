class RoomError(Exception):
    """Base class for requests the arena server refuses to carry out."""

    message = 'Request rejected'

    def __init__(self, message=None):
        super().__init__(message or self.message)

    @property
    def name(self):
        return type(self).__name__

    def to_dict(self):
        return {'error': self.name, 'message': str(self)}


class RoomNotFound(RoomError):
    message = 'Room not found'


class RoomAlreadyStarted(RoomError):
    message = 'Game already started'


class NotLeader(RoomError):
    message = 'Only the room leader can do that'


class InvalidSettings(RoomError):
    message = 'Invalid room settings'
