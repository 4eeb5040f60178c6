import os
from dotenv import load_dotenv

# Загрузка .env
load_dotenv()

# База данных
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///ledger.db")

# Optimistic transactions
TRANSACTION_MAX_ATTEMPTS = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5"))
# SELECT ... FOR UPDATE on reads (ignored by SQLite)
TRANSACTION_LOCK_ROWS = os.getenv("TRANSACTION_LOCK_ROWS", "0").lower() in ("1", "true", "yes")

# Identity
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

# WhatsApp (BIPSMS)
BIPSMS_API_SECRET = os.getenv("BIPSMS_API_SECRET")
BIPSMS_ACCOUNT_ID = os.getenv("BIPSMS_ACCOUNT_ID")
BIPSMS_URL = os.getenv("BIPSMS_URL", "https://app.bipsms.com/api/send/whatsapp")
NOTIFICATION_TIMEOUT = int(os.getenv("NOTIFICATION_TIMEOUT", "30"))

# Тексты сообщений
CURRENCY_LABEL = os.getenv("CURRENCY_LABEL", "BDT")
ORGANIZATION_NAME = os.getenv("ORGANIZATION_NAME", "ভূজপুর প্রবাসী যুব কল্যাণ পরিষদ")
DEFAULT_CAMPAIGN_NAME = "General Donation"

# Email
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@example.org")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Donations")
