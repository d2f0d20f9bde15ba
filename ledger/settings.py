import os
from dotenv import load_dotenv

load_dotenv()


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///ledger.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Frankfurter-compatible provider; /latest?base=USD&symbols=EUR,ILS
RATE_PROVIDER_URL = os.getenv("RATE_PROVIDER_URL", "https://api.frankfurter.dev/v1")
RATE_PROVIDER_TIMEOUT = float(os.getenv("RATE_PROVIDER_TIMEOUT", "10"))

HISTORY_MONTHS = 6

# Logging
APP_LOG_LEVEL = os.getenv("APP_LOG_LEVEL", "INFO")
THIRD_PARTY_LOG_LEVEL = os.getenv("THIRD_PARTY_LOG_LEVEL", "WARNING")
LOG_FILE = os.getenv("LOG_FILE")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))
