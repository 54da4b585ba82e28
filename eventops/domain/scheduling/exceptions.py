"""Scheduling domain errors - mapped to HTTP responses in main.py"""


class SchedulingError(Exception):
    """Base class for recoverable scheduling failures"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ResourceNotFound(SchedulingError):
    status_code = 404

    def __init__(self, resource_id: int):
        super().__init__(f"Resource {resource_id} not found or inactive")
        self.resource_id = resource_id


class CommitmentNotFound(SchedulingError):
    status_code = 404

    def __init__(self, commitment_id: int):
        super().__init__(f"Commitment {commitment_id} not found")
        self.commitment_id = commitment_id


class BlockNotFound(SchedulingError):
    status_code = 404

    def __init__(self, block_id: int):
        super().__init__(f"Block {block_id} not found")
        self.block_id = block_id


class InvalidWindow(SchedulingError):
    """Window with start >= end, or starting too far in the past"""

    status_code = 400


class SchedulingConflict(SchedulingError):
    """The requested window cannot be committed; ``reasons`` lists every conflict found"""

    status_code = 409

    def __init__(self, reasons: list):
        super().__init__("Requested window is not available")
        self.reasons = list(reasons)

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "reasons": [r.model_dump() for r in self.reasons],
        }


class BlockConflict(SchedulingError):
    """An active block already covers part of the requested block"""

    status_code = 409

    def __init__(self, block_ids: list[int]):
        super().__init__("A block already exists in the requested period")
        self.block_ids = list(block_ids)

    def to_dict(self) -> dict:
        return {"detail": self.message, "conflicting_block_ids": self.block_ids}


class PermissionDenied(SchedulingError):
    status_code = 403


class StorageUnavailable(SchedulingError):
    """Persistence failed or the resource lock could not be taken in time; safe to retry"""

    status_code = 503

    def __init__(self, message: str = "Scheduling storage unavailable, please retry"):
        super().__init__(message)


class AvailabilityRowNotFound(SchedulingError):
    status_code = 404

    def __init__(self, row_id: int):
        super().__init__(f"Availability row {row_id} not found")
        self.row_id = row_id


class HoldNotFound(SchedulingError):
    status_code = 404

    def __init__(self, hold_id: int):
        super().__init__(f"Hold {hold_id} not found")
        self.hold_id = hold_id


class HoldNotActive(SchedulingError):
    """The hold was already converted, released or has expired"""

    status_code = 400

    def __init__(self, hold_id: int, status: str):
        super().__init__(f"Hold {hold_id} is {status}; only active holds can be changed")
        self.hold_id = hold_id
        self.status = status
