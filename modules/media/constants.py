import os
from tempfile import gettempdir

TMP_DIR = os.path.join(gettempdir(), "kojo")

DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 20.0
DEFAULT_DOWNLOAD_CAP_BYTES = 100 * 1024 * 1024
DEFAULT_MAX_FRAMES = 4
FFMPEG_TIMEOUT_SECONDS = 30.0

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "KojoGuardian/1.0 Chrome/124.0.0.0 Safari/537.36"
)

MEDIA_USER_AGENT = (os.getenv("KOJO_MEDIA_USER_AGENT") or "").strip() or _DEFAULT_USER_AGENT
