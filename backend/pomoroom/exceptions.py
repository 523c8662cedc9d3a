"""Pomoroom exception classes."""


class RoomError(Exception):
    """Base exception for all room operations."""


class RoomNotFoundError(RoomError, LookupError):
    """Raised when a room code does not match any live room."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"room {room_id!r} not found")
        self.room_id = room_id


class RoomFullError(RoomError):
    """Raised when a new participant would exceed the room's capacity."""

    def __init__(self, room_id: str, capacity: int) -> None:
        super().__init__(f"room {room_id!r} is full ({capacity} participants)")
        self.room_id = room_id
        self.capacity = capacity


class ForbiddenActionError(RoomError, PermissionError):
    """Raised when a non-host attempts a host-only action."""

    def __init__(self, room_id: str, user_id: str, action: str) -> None:
        super().__init__(f"{user_id!r} is not the host of room {room_id!r}; cannot {action}")
        self.room_id = room_id
        self.user_id = user_id
        self.action = action


class RoomCodeExhaustedError(RoomError, RuntimeError):
    """Raised when no unused room code could be generated."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"no free room code after {attempts} attempts")
        self.attempts = attempts
