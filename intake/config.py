"""Central configuration for the intake service.

``Settings`` (Pydantic BaseSettings) holds what the API process reads once
at start-up: identity and where sessions are stored. Module-level constants
are what the core reads at call time, so tests can monkeypatch them
(``import intake.config as cfg``).
"""

from dotenv import load_dotenv, find_dotenv
import os

from pydantic_settings import BaseSettings

# Load environment variables once for the whole app
load_dotenv(find_dotenv())


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no"}


# Paths
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))  # repo root
DATA_DIR = os.path.join(PROJECT_ROOT, "data")
STATE_DIR = os.path.join(PROJECT_ROOT, ".data")
BODY_PARTS_PATH = os.getenv("BODY_PARTS_PATH", os.path.join(DATA_DIR, "body_parts.json"))
SYMPTOMS_PATH = os.getenv("SYMPTOMS_PATH", os.path.join(DATA_DIR, "symptoms_by_location.json"))


class Settings(BaseSettings):
    """Runtime settings for the API process.

    Values are loaded from environment variables and optional .env files.
    """

    APP_NAME: str = "PreDoctor Intake Bot"
    ENV: str = os.getenv("ENV", "dev")

    # Session documents: SQLite file with one JSON document per conversation key,
    # or an in-process dict when disabled (dev only)
    ENABLE_PERSISTENT_STORE: bool = _flag("ENABLE_PERSISTENT_STORE", "1")
    STORE_DB_PATH: str = os.getenv("STORE_DB_PATH", os.path.join(STATE_DIR, "sessions.sqlite3"))

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Reserved whole-message commands (case-insensitive)
RESTART_KEYWORD = os.getenv("RESTART_KEYWORD", "restart").strip().lower()
END_KEYWORD = os.getenv("END_KEYWORD", "end").strip().lower()
BACK_KEYWORD = os.getenv("BACK_KEYWORD", "back").strip().lower()
HELP_KEYWORD = os.getenv("HELP_KEYWORD", "help").strip().lower()

# Paginated multi-select
PAGE_SIZE = max(1, int(os.getenv("PAGE_SIZE", "8")))

# Intake limits
MAX_COMPLAINTS = int(os.getenv("MAX_COMPLAINTS", "5"))
MAX_PATIENTS = int(os.getenv("MAX_PATIENTS", "8"))  # saved profiles per conversation key
MIN_ID_LENGTH = 4
MIN_BIRTH_YEAR = int(os.getenv("MIN_BIRTH_YEAR", "1900"))
SEVERITY_MIN = 0
SEVERITY_MAX = 10

# Per-turn deadline. The core skips its write once the deadline has passed;
# the transport stops waiting after the extra grace period.
TURN_TIMEOUT_SECONDS = float(os.getenv("TURN_TIMEOUT_SECONDS", "8"))
TURN_GRACE_SECONDS = float(os.getenv("TURN_GRACE_SECONDS", "2"))

# Simple API knobs
APP_TITLE = os.getenv("APP_TITLE", "PreDoctor Intake API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
