from dotenv import load_dotenv
import os

load_dotenv()

REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "5"))
USER_AGENT = os.getenv("USER_AGENT", "Mozilla/5.0 (compatible; FaviconFetcher/3.0)")
MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", "3"))
VERIFY_SSL = os.getenv("VERIFY_SSL", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

CACHE_DIR = os.getenv("CACHE_DIR", "cache")
CACHE_EXPIRE = int(os.getenv("CACHE_EXPIRE", "2592000"))  # 30 days
HASH_KEY = os.getenv("HASH_KEY")
HASH_KEY_FILE = os.getenv("HASH_KEY_FILE", os.path.join(CACHE_DIR, ".hash_key"))

FALLBACK_FAVICON_URL = os.getenv(
    "FALLBACK_FAVICON_URL",
    "https://t3.gstatic.com/faviconV2?client=SOCIAL&type=FAVICON&url={origin}",
)
MAX_URL_LENGTH = int(os.getenv("MAX_URL_LENGTH", "512"))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(5 * 1024 * 1024)))
