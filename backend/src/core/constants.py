"""Application constants and configuration values."""

from core.config import FRONTEND_URL, COMPLETED_BLOCKS_RESOURCES

# Database field lengths
MAX_REFERENCE_LENGTH = 64  # Patient refs, operator ids, resource ids
MAX_NOTES_LENGTH = 500
MAX_CANCELLATION_REASON_LENGTH = 500

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,  # Production URL if FRONTEND_URL is set accordingly
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Appointment statuses
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CHECKED_IN = "checked-in"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no-show"

APPOINTMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CHECKED_IN,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

# Statuses that still occupy their resources
ACTIVE_STATUSES = frozenset({
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CHECKED_IN,
    STATUS_IN_PROGRESS,
})

# Statuses the conflict checker treats as holding their doctor/room.
# Cancelled and no-show appointments never block a slot.
COMMITTED_STATUSES = (
    ACTIVE_STATUSES | {STATUS_COMPLETED} if COMPLETED_BLOCKS_RESOURCES else ACTIVE_STATUSES
)

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW})

# Only these may have their time, resources or services changed
MODIFIABLE_STATUSES = frozenset({STATUS_PENDING, STATUS_CONFIRMED})

# Booking channels
CHANNEL_WALK_IN = "walk-in"
CHANNEL_PHONE = "phone"
CHANNEL_ONLINE = "online"
BOOKING_CHANNELS = (CHANNEL_WALK_IN, CHANNEL_PHONE, CHANNEL_ONLINE)

# Informational classification carried on each appointment
APPOINTMENT_TYPES = ("consultation", "treatment", "follow-up", "emergency")
APPOINTMENT_PRIORITIES = ("normal", "urgent", "emergency")

# Resource kinds an appointment can occupy
RESOURCE_KIND_DOCTOR = "doctor"
RESOURCE_KIND_ROOM = "room"
RESOURCE_KIND_EQUIPMENT = "equipment"

# Recurrence
FREQUENCY_DAILY = "daily"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_MONTHLY = "monthly"
RECURRENCE_FREQUENCIES = (FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_MONTHLY)

# Display prefix for human-readable appointment numbers (e.g. APT000042)
APPOINTMENT_NUMBER_PREFIX = "APT"

# Appointment list pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
