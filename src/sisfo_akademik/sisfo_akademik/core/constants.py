"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TENANT_ID = "default"

DEFAULT_OPERATION_TIMEOUT_SECONDS = 5.0

DEFAULT_ADMISSION_HTTP_PORT = 9095
DEFAULT_ATTENDANCE_HTTP_PORT = 9093

# Check-in geofence when the academic service reports no radius.
DEFAULT_SCHOOL_RADIUS_METERS = 100.0

ADMISSION_API_PREFIX = "/api/v1/admission"
ATTENDANCE_API_PREFIX = "/api/v1/attendance"
HEALTH_PATH = "/api/v1/health"
METRICS_PATH = "/metrics"

MAX_DOCUMENT_SIZE_BYTES = 5 * 1024 * 1024
UPLOAD_URL_PREFIX = "/uploads/"
DEFAULT_UPLOAD_DIR = "./uploads"

# Final score weights: test, interview, previous school average.
TEST_SCORE_WEIGHT = 0.4
INTERVIEW_SCORE_WEIGHT = 0.4
AVERAGE_SCORE_WEIGHT = 0.2

MIN_SCORE = 0.0
MAX_SCORE = 100.0

REGISTRATION_NUMBER_PREFIX = "REG"
REGISTRATION_NUMBER_ATTEMPTS = 5

EVENTS_EXCHANGE = "sisfo.events"
STUDENT_REGISTERED_ROUTING_KEY = "admission.student.registered"
DEFAULT_OUTBOX_BATCH_SIZE = 100
