import os

from config import env_flag, env_port

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "sisfo"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "sisfo_akademik"),
}

APP_HTTP_PORT = env_port()

RABBITMQ_URL = os.getenv("RABBITMQ_URL", "")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "/var/lib/sisfo/uploads")

# Academic service base URL for the school location lookup; empty turns the check-in geofence off.
ACADEMIC_SERVICE_URL = os.getenv("ACADEMIC_SERVICE_URL", "")

OPERATION_TIMEOUT_SECONDS = float(os.getenv("OPERATION_TIMEOUT_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = env_flag("LOG_JSON", "1")

DEBUG = False

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "0")
