class SlotServiceError(Exception):
    """Base class for expected, caller-recoverable outcomes."""


class ValidationError(SlotServiceError):
    pass


class NotFoundError(SlotServiceError):
    pass


class SlotOccupiedError(SlotServiceError):
    def __init__(self, position: int, expires_at=None):
        self.position = position
        self.expires_at = expires_at
        super().__init__(f"Slot {position} is currently occupied")


class DuplicatePendingRequestError(SlotServiceError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("You already have a pending notification request")


class AlreadyPublishedError(SlotServiceError):
    def __init__(self, advertisement_id: int, expires_at=None):
        self.advertisement_id = advertisement_id
        self.expires_at = expires_at
        super().__init__("This advertisement is already published")
