"""
Queue domain errors

Every error a caller can act on carries the context a human needs to resolve
it (current status, branch name, room number) in ``to_dict()``.
"""

from typing import Any, Dict, Optional


class QueueError(Exception):
    """Base class for queue/booking domain errors"""

    status_code: int = 400
    code: str = "queue_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.code, "message": self.message}
        data.update(self.context)
        return data


class ValidationError(QueueError):
    """Malformed input (phone, name, party size, settings value)"""

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        super().__init__(message, field=field, **context)
        self.field = field


class DuplicateActiveRequestError(QueueError):
    """Customer already holds an active queue entry somewhere"""

    status_code = 409
    code = "duplicate_active_request"

    def __init__(self, status: str, branch_name: str, entry_id: Any = None):
        super().__init__(
            f"Customer already has an active request ({status}) at {branch_name}",
            status=status,
            branch_name=branch_name,
            entry_id=str(entry_id) if entry_id else None,
        )
        self.status = status
        self.branch_name = branch_name


class IllegalTransitionError(QueueError):
    """Requested status change is not permitted from the current state"""

    status_code = 409
    code = "illegal_transition"

    def __init__(
        self,
        current_status: str,
        target_status: str,
        branch_name: Optional[str] = None,
        room_number: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        message = f"Cannot move entry from {current_status} to {target_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            current_status=current_status,
            target_status=target_status,
            branch_name=branch_name,
            room_number=room_number,
        )
        self.current_status = current_status
        self.target_status = target_status


class RoomConflictError(QueueError):
    """Target room is occupied (or not bookable); pick another room"""

    status_code = 409
    code = "room_conflict"
    retryable = True

    def __init__(self, room_number: int, branch_name: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(
            reason or f"Room {room_number} is not available, pick another room",
            room_number=room_number,
            branch_name=branch_name,
            retryable=True,
        )
        self.room_number = room_number
        self.branch_name = branch_name


class TransientStoreError(QueueError):
    """Store kept failing after the bounded retry"""

    status_code = 503
    code = "store_unavailable"

    def __init__(self, message: str = "Data store temporarily unavailable", attempts: Optional[int] = None):
        super().__init__(message, attempts=attempts)


class NotificationDeliveryFailure(QueueError):
    """Out-of-band message could not be delivered; never reverses state"""

    status_code = 502
    code = "notification_failed"

    def __init__(self, phone: str, reason: str):
        super().__init__(f"Could not deliver message to {phone}: {reason}", phone=phone)


class VerificationError(QueueError):
    """Identity verification code missing, expired or wrong"""

    status_code = 400
    code = "verification_failed"


class NotFoundError(QueueError):
    status_code = 404
    code = "not_found"


class PermissionDeniedError(QueueError):
    status_code = 403
    code = "permission_denied"
