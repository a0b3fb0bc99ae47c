import os

def get_secret(secret_name: str) -> str | None:
    secret_path = f'/run/secrets/{secret_name}'
    try:
        with open(secret_path, 'r', encoding='utf-8') as secret_file:
            return secret_file.read().strip()
    except IOError:
        return os.getenv(secret_name)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


DB_PASSWORD = get_secret('db_password')
MINIO_ACCESS_KEY = get_secret('minio_access_key')
MINIO_SECRET_KEY = get_secret('minio_secret_key')

POSTGRES_DB = os.getenv("POSTGRES_DB")
POSTGRES_USER = os.getenv("POSTGRES_USER")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT")
REDIS_URL = os.getenv("REDIS_URL")

if POSTGRES_USER and DB_PASSWORD and POSTGRES_DB:
    DATABASE_URL = f"postgresql+asyncpg://{POSTGRES_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{POSTGRES_DB}"
else:
    raise ValueError("Can't build DATABASE_URL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SCHEMA_CHECK_ON_STARTUP = _env_bool("SCHEMA_CHECK_ON_STARTUP", default=True)

AUDIT_STREAM = os.getenv("AUDIT_STREAM", "audit:events")
AUDIT_GROUP = os.getenv("AUDIT_GROUP", "audit-writers")
AUDIT_BATCH = int(os.getenv("AUDIT_BATCH", "100"))
AUDIT_BLOCK_MS = int(os.getenv("AUDIT_BLOCK_MS", "5000"))

MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "localhost:9000")
MINIO_USE_SSL = _env_bool("MINIO_USE_SSL")
INVOICE_BUCKET = os.getenv("INVOICE_BUCKET", "invoices")
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))
DOCUMENT_LOCK_TIMEOUT_SECONDS = int(os.getenv("DOCUMENT_LOCK_TIMEOUT_SECONDS", "60"))

# Sequence is never rendered narrower than 6 digits
INVOICE_NUMBER_WIDTH = max(6, int(os.getenv("INVOICE_NUMBER_WIDTH", "6")))
DEFAULT_INVOICE_PREFIX = os.getenv("DEFAULT_INVOICE_PREFIX", "INV")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "EUR")
DEFAULT_PHONE_REGION = os.getenv("DEFAULT_PHONE_REGION") or None
