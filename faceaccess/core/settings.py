# faceaccess/core/settings.py
"""
Configuration for the face access system.

Values come from the dataclass defaults, overridden by `config/config.json`
when present, then adjusted for the platform (Raspberry Pi gets fewer TFLite
threads).
"""
import os
import json
import logging
import platform
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# === PLATFORM DETECTION ===
IS_PI = platform.system() == "Linux" and os.path.exists("/proc/device-tree/model")

# === PATHS ===
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CONFIG_PATH = os.path.join(BASE_DIR, 'config', 'config.json')

# === LIMITS ===
SPOOF_THRESHOLD_MIN = 0.001
SPOOF_THRESHOLD_MAX = 0.5


def clamp_spoof_threshold(value: float) -> float:
    return min(max(float(value), SPOOF_THRESHOLD_MIN), SPOOF_THRESHOLD_MAX)


def _load_json_config(path: str) -> dict:
    """Load config from a JSON file, {} if missing or invalid."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring config {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class Settings:
    """Runtime configuration."""

    config_path: str = CONFIG_PATH

    # === PLATFORM (read-only) ===
    IS_PI: bool = field(default_factory=lambda: IS_PI)
    BASE_DIR: str = field(default_factory=lambda: BASE_DIR)

    # === DECISION THRESHOLDS ===
    SPOOF_THRESHOLD: float = 0.088        # p_spoof >= threshold -> spoof
    VERIFICATION_THRESHOLD: float = 1.9   # L2 distance < threshold -> match
    DUPLICATE_THRESHOLD: float = 0.92     # L2 distance < threshold -> already enrolled

    # === PREPROCESSING ===
    PREPROCESSING_MODE: str = "fast"      # fast | accurate
    LIVENESS_CROP_SCALE: float = 2.7
    CLAHE_CLIP_LIMIT: float = 2.0
    CLAHE_TILE_GRID: int = 8

    # === MODELS ===
    LIVENESS_MODEL: str = "models/anti_spoof/minifasnetv2_int8.tflite"
    EMBEDDING_MODEL: str = "models/recognition/transfer-learningv4_int8.tflite"
    TFLITE_NUM_THREADS: int = 4

    # === STORAGE ===
    EMBEDDINGS_PATH: str = "face_embeddings.json"

    # === WEB SERVER ===
    ENABLE_WEB_SERVER: bool = True
    WEB_HOST: str = "0.0.0.0"
    WEB_PORT: int = 5000

    def __post_init__(self):
        self._load_from_json()
        self._compute_defaults()

    def _load_from_json(self):
        """Apply settings from config.json when present."""
        config = _load_json_config(self.config_path)
        for key, value in config.items():
            if hasattr(self, key) and key.isupper() and value is not None:
                setattr(self, key, value)

    def _compute_defaults(self):
        """Platform-dependent adjustments and value normalization."""
        if self.IS_PI:
            self.TFLITE_NUM_THREADS = min(self.TFLITE_NUM_THREADS, 2)
        self.SPOOF_THRESHOLD = clamp_spoof_threshold(self.SPOOF_THRESHOLD)
        self.PREPROCESSING_MODE = str(self.PREPROCESSING_MODE).lower()

    def set_spoof_threshold(self, value: float) -> float:
        """Update the spoof threshold, clamped to [0.001, 0.5]."""
        self.SPOOF_THRESHOLD = clamp_spoof_threshold(value)
        logger.info(f"Spoof threshold set to {self.SPOOF_THRESHOLD}")
        return self.SPOOF_THRESHOLD

    def resolve_path(self, path: str) -> str:
        """Relative paths are resolved against BASE_DIR."""
        if os.path.isabs(path):
            return path
        return os.path.join(self.BASE_DIR, path)


# === SINGLETON ===
settings = Settings()
