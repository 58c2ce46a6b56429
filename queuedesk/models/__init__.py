from queuedesk.models.branch import Branch
from queuedesk.models.customer import Customer
from queuedesk.models.queue_entry import (
    QueueEntry, QueueEntryStatus, ACTIVE_STATUSES, TERMINAL_STATUSES
)
from queuedesk.models.booking import Booking, BookingStatus
from queuedesk.models.notification import NotificationLog
from queuedesk.models.otp_verification import OtpVerification
