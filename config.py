"""Global configuration for the Standing Desk reminder service."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Timezone reminders are planned in
REMINDER_TZ = os.getenv("REMINDER_TZ", "Europe/London")

# Config store: "file", "supabase" or "memory"
STORE_BACKEND = os.getenv("STORE_BACKEND", "file")
STORE_PATH = Path(os.getenv("STORE_PATH", Path(os.getenv("LOCALAPPDATA", ".")) / "standing-desk" / "config.json"))

# Supabase (synced store)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "reminder_config")

# System notifications: "desktop", "ntfy" or "console"
SYSTEM_NOTIFIER = os.getenv("SYSTEM_NOTIFIER", "desktop")
NTFY_SERVER = os.getenv("NTFY_SERVER", "https://ntfy.sh")
NTFY_TOPIC = os.getenv("NTFY_TOPIC")

# Seconds a Windows balloon stays up (0 elsewhere means "until dismissed")
NOTIFICATION_TIMEOUT = int(os.getenv("NOTIFICATION_TIMEOUT", "60"))

# In-page alerts - Chrome started with --remote-debugging-port
BROWSER_CDP_URL = os.getenv("BROWSER_CDP_URL")
BROWSER_TIMEOUT = float(os.getenv("BROWSER_TIMEOUT", "10"))

# Web Push
VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY", "")
BACKEND_SUBSCRIBE_URL = os.getenv("BACKEND_SUBSCRIBE_URL", "")
PUSH_ENDPOINT_BASE = os.getenv("PUSH_ENDPOINT_BASE", "http://localhost:8110/push")

# HTTP service
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8110"))
SERVICE_URL = os.getenv("SERVICE_URL", f"http://{API_HOST}:{API_PORT}")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOCALAPPDATA", ".")) / "standing-desk" / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
