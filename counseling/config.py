import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./counseling.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Cloudflare R2 Configuration (chat attachments)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "chat-files")
# Public bucket domain, attachments must be fetchable without signing
R2_PUBLIC_BASE_URL = os.getenv("R2_PUBLIC_BASE_URL", "")

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Counseling <noreply@example.com>")

# Shared secret used by the payment gateway to sign capture notifications
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")

# Bank transfer instructions sent to clients paying manually
BANK_NAME = os.getenv("BANK_NAME", "MUFG Bank")
BANK_BRANCH_NAME = os.getenv("BANK_BRANCH_NAME", "Shinjuku Branch")
BANK_ACCOUNT_TYPE = os.getenv("BANK_ACCOUNT_TYPE", "Ordinary")
BANK_ACCOUNT_NUMBER = os.getenv("BANK_ACCOUNT_NUMBER", "1234567")
BANK_ACCOUNT_HOLDER = os.getenv("BANK_ACCOUNT_HOLDER", "Counseling Service Co., Ltd.")
BANK_TRANSFER_DEADLINE_DAYS = int(os.getenv("BANK_TRANSFER_DEADLINE_DAYS", "3"))

# Chat send limits (per user)
CHAT_RATE_LIMIT = int(os.getenv("CHAT_RATE_LIMIT", "30"))
CHAT_RATE_WINDOW_SECONDS = int(os.getenv("CHAT_RATE_WINDOW_SECONDS", "60"))

# Confirmed sessions are auto-completed this long after their window closes
SESSION_COMPLETION_GRACE_MINUTES = int(os.getenv("SESSION_COMPLETION_GRACE_MINUTES", "30"))

# Subscriber buffer size before a slow realtime consumer is dropped
REALTIME_QUEUE_SIZE = int(os.getenv("REALTIME_QUEUE_SIZE", "1000"))

# Rooms hash onto a fixed set of append locks
ROOM_LOCK_STRIPES = int(os.getenv("ROOM_LOCK_STRIPES", "256"))
