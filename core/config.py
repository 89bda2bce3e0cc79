import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=False)

# Application environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Application settings
APP_NAME = "Green Earth API"
APP_VERSION = "1.0.0"

# Database settings
DATABASE_URL = os.getenv("DATABASE_URL")
TESTING = os.getenv("TESTING", "false").lower() == "true"

# Supabase settings (auth tokens + edge functions)
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_FUNCTIONS_URL = os.getenv(
    "SUPABASE_FUNCTIONS_URL", f"{SUPABASE_URL}/functions/v1" if SUPABASE_URL else ""
).rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
SUPABASE_JWT_LEEWAY = int(os.getenv("SUPABASE_JWT_LEEWAY", "60"))  # seconds of clock-skew tolerance

# AI edge functions
WASTE_FUNCTION_NAME = os.getenv("WASTE_FUNCTION_NAME", "analyze-waste")
CHAT_FUNCTION_NAME = os.getenv("CHAT_FUNCTION_NAME", "green-buddy-chat")
AI_FUNCTION_TIMEOUT_SECONDS = float(os.getenv("AI_FUNCTION_TIMEOUT_SECONDS", "60"))

# Local chat history cache used by the assistant client
CHAT_HISTORY_PATH = os.getenv("CHAT_HISTORY_PATH", os.path.expanduser("~/.green-earth/chat-history.json"))
CHAT_HISTORY_MAX_MESSAGES = int(os.getenv("CHAT_HISTORY_MAX_MESSAGES", "50"))

# Redis settings
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Pusher settings
PUSHER_ENABLED = os.getenv("PUSHER_ENABLED", "true").lower() == "true"
PUSHER_APP_ID = os.getenv("PUSHER_APP_ID", "")
PUSHER_KEY = os.getenv("PUSHER_KEY", "")
PUSHER_SECRET = os.getenv("PUSHER_SECRET", "")
PUSHER_CLUSTER = os.getenv("PUSHER_CLUSTER", "ap1")

# AWS S3 (object storage for call recordings)
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "ap-southeast-1")
AWS_S3_ENDPOINT_URL = os.getenv("AWS_S3_ENDPOINT_URL") or None  # e.g. Supabase storage S3 endpoint
CALL_RECORDINGS_BUCKET = os.getenv("CALL_RECORDINGS_BUCKET", "call-recordings")
STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "").rstrip("/")

# Messaging settings
MESSAGING_ENABLED = os.getenv("MESSAGING_ENABLED", "true").lower() == "true"
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "4000"))
MESSAGE_HISTORY_LIMIT = int(os.getenv("MESSAGE_HISTORY_LIMIT", "50"))
TYPING_TIMEOUT_SECONDS = float(os.getenv("TYPING_TIMEOUT_SECONDS", "3"))
TYPING_DEDUP_MS = int(os.getenv("TYPING_DEDUP_MS", "1500"))

# Call settings
CALLS_ENABLED = os.getenv("CALLS_ENABLED", "true").lower() == "true"
CALL_RING_TIMEOUT_SECONDS = int(os.getenv("CALL_RING_TIMEOUT_SECONDS", "30"))
CALL_RECORDING_MAX_BYTES = int(os.getenv("CALL_RECORDING_MAX_BYTES", str(200 * 1024 * 1024)))

# Wallet / rewards settings
TRANSACTION_HISTORY_LIMIT = int(os.getenv("TRANSACTION_HISTORY_LIMIT", "50"))
SCAN_HISTORY_LIMIT = int(os.getenv("SCAN_HISTORY_LIMIT", "20"))

# Background scheduler (missed-call sweep, typing purge)
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
CALL_SWEEP_INTERVAL_SECONDS = int(os.getenv("CALL_SWEEP_INTERVAL_SECONDS", "10"))
TYPING_PURGE_INTERVAL_SECONDS = int(os.getenv("TYPING_PURGE_INTERVAL_SECONDS", "60"))
