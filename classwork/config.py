"""
Configuration management for Classwork.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent

# User data directories
HOME_DIR = Path.home()
DATA_DIR = Path(os.getenv("CLASSWORK_DATA_DIR", str(HOME_DIR / ".classwork_data")))
CACHE_FILE = str(DATA_DIR / "answer_cache.json")
ARCHIVE_DIR = str(DATA_DIR / "submissions")
DEFINITIONS_DIR = os.getenv("CLASSWORK_DEFINITIONS_DIR", str(BASE_DIR / "assignments"))

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")

# Remote endpoints used by the student client
DEFINITION_SOURCE = os.getenv("CLASSWORK_DEFINITION_SOURCE", "http://localhost:3000/api/assignments")
SUBMIT_URL = os.getenv("CLASSWORK_SUBMIT_URL", "http://localhost:3000/api/legacy")
TEACHER_KEY = os.getenv("CLASSWORK_TEACHER_KEY", "")
HTTP_TIMEOUT = 15

# Autosave
DEBOUNCE_SECONDS = float(os.getenv("CLASSWORK_DEBOUNCE_SECONDS", "1.5"))

# Presence tiers (seconds since last activity)
PRESENCE_ACTIVE_SECONDS = 30
PRESENCE_RECENT_SECONDS = 300

# Server configuration
HOST = "0.0.0.0"
PORT = int(os.getenv("PORT", "3000"))
DEBUG = os.getenv("CLASSWORK_DEBUG", "").lower() in ("1", "true", "yes")
AUTH_DISABLED = os.getenv("CLASSWORK_AUTH_DISABLED", "").lower() in ("1", "true", "yes")


class Config:
    """Application configuration class."""

    def __init__(self):
        self.cache_file = CACHE_FILE
        self.archive_dir = ARCHIVE_DIR
        self.definitions_dir = DEFINITIONS_DIR
        self.definition_source = DEFINITION_SOURCE
        self.submit_url = SUBMIT_URL
        self.teacher_key = TEACHER_KEY
        self.debounce_seconds = DEBOUNCE_SECONDS
        self.presence_active_seconds = PRESENCE_ACTIVE_SECONDS
        self.presence_recent_seconds = PRESENCE_RECENT_SECONDS
        self.auth_disabled = AUTH_DISABLED

    def to_dict(self):
        return {
            "cache_file": self.cache_file,
            "archive_dir": self.archive_dir,
            "definitions_dir": self.definitions_dir,
            "definition_source": self.definition_source,
            "submit_url": self.submit_url,
            "debounce_seconds": self.debounce_seconds,
            "presence_active_seconds": self.presence_active_seconds,
            "presence_recent_seconds": self.presence_recent_seconds,
            "auth_disabled": self.auth_disabled,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


# Global config instance
config = Config()
