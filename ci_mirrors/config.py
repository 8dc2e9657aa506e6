"""Runtime settings read from the environment, after loading a local .env if present."""
import os

from dotenv import load_dotenv

load_dotenv()


CDN_URL: str = os.getenv("CI_MIRRORS_CDN_URL", "https://ci-mirrors.rust-lang.org")
S3_BUCKET: str = os.getenv("CI_MIRRORS_S3_BUCKET", "rust-lang-ci-mirrors")

# Network limits. Hash verification does not depend on these values.
CONNECT_TIMEOUT: float = float(os.getenv("CI_MIRRORS_CONNECT_TIMEOUT", "30"))
READ_TIMEOUT: float = float(os.getenv("CI_MIRRORS_READ_TIMEOUT", "300"))
MAX_REDIRECTS: int = int(os.getenv("CI_MIRRORS_MAX_REDIRECTS", "10"))

CHUNK_SIZE = 64 * 1024

DEFAULT_MANIFEST_PATH = "files"

USER_AGENT = "ci-mirrors (+https://github.com/rust-lang/ci-mirrors)"
