import os

from config import env_flag

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "sisfo_akademik_test"),
}

APP_HTTP_PORT = None

RABBITMQ_URL = ""

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads-test")

ACADEMIC_SERVICE_URL = ""

OPERATION_TIMEOUT_SECONDS = 5.0

LOG_LEVEL = "WARNING"
LOG_JSON = False

DEBUG = False
TESTING = True

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "0")
