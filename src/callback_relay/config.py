import os
from dotenv import load_dotenv

load_dotenv()

RELAY_HOST = os.getenv("RELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("RELAY_PORT", "8083"))

# Correlation store
RECORD_TTL_SECONDS = float(os.getenv("RECORD_TTL_SECONDS", "3600"))  # 1 hour
SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", "600"))  # 10 minutes

# Long polling
LONG_POLL_TIMEOUT_MS = int(os.getenv("LONG_POLL_TIMEOUT_MS", "30000"))
LONG_POLL_MAX_TIMEOUT_MS = int(os.getenv("LONG_POLL_MAX_TIMEOUT_MS", "120000"))

# Broadcast streams
KEEP_ALIVE_SECONDS = float(os.getenv("KEEP_ALIVE_SECONDS", "30"))
STREAM_QUEUE_SIZE = int(os.getenv("STREAM_QUEUE_SIZE", "100"))
STREAM_SEND_TIMEOUT_SECONDS = float(os.getenv("STREAM_SEND_TIMEOUT_SECONDS", "5"))

WEBHOOK_LOG_LIMIT = int(os.getenv("WEBHOOK_LOG_LIMIT", "50"))

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
