"""
Configuration Management for HANDPOSE

Loads and provides access to configuration from config.json and builds the
typed parameter records the detectors take.
Leaves may be plain values or [value, "description"] pairs.
"""

import copy
import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.json"


def _check_unit_interval(record, names):
    for name in names:
        value = getattr(record, name)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValueError(f"{type(record).__name__}.{name} must be a number, got {value!r}")
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{type(record).__name__}.{name} must be in [0, 1], got {value}")


def _check_positive(record, names):
    for name in names:
        value = getattr(record, name)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"{type(record).__name__}.{name} must be a positive number, got {value!r}")


@dataclass(frozen=True)
class DetectionParameters:
    """
    Runtime knobs of the descriptor classifier.

    confidence_threshold: minimum confidence for a primary match
    extension_threshold: extension at which a finger counts as extended
    curl_threshold: curl at which a finger counts as curled
    distance_threshold: fingertip contact distance in meters
    """
    confidence_threshold: float = 0.7
    extension_threshold: float = 0.7
    curl_threshold: float = 0.7
    distance_threshold: float = 0.05

    def __post_init__(self):
        _check_unit_interval(self, [f.name for f in fields(self)])


@dataclass(frozen=True)
class ThumbsUpThresholds:
    # dot(thumb direction, hand up) must exceed this
    alignment: float = 0.45
    # |thumb tip - wrist| / |thumb metacarpal - wrist| must exceed this
    extension_ratio: float = 1.5
    # each non-thumb finger's segment alignment must stay below this
    finger_curl: float = 0.7

    def __post_init__(self):
        _check_unit_interval(self, ("alignment", "finger_curl"))
        _check_positive(self, ("extension_ratio",))


@dataclass(frozen=True)
class PalmGestureThresholds:
    palm_facing: float = 0.5
    index_open: float = 1.7
    middle_open: float = 1.8
    ring_open: float = 1.7
    pinky_open: float = 1.5
    fist_ratio: float = 1.0
    min_fingers: int = 3

    def __post_init__(self):
        _check_unit_interval(self, ("palm_facing",))
        _check_positive(self, ("index_open", "middle_open", "ring_open", "pinky_open", "fist_ratio"))
        if not isinstance(self.min_fingers, int) or not 1 <= self.min_fingers <= 4:
            raise ValueError(f"PalmGestureThresholds.min_fingers must be in 1..4, got {self.min_fingers!r}")


class Config:
    """
    Configuration loaded from a JSON file.

    Construct one per application; nothing here is process-wide.
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = str(config_path) if config_path is not None else str(DEFAULT_CONFIG_PATH)
        self._config_data: Dict[str, Any] = {}
        self.reload()

    @property
    def path(self) -> str:
        return self._config_path

    def reload(self):
        """Reload configuration from file, falling back to defaults."""
        try:
            with open(self._config_path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            self._config_data = data
            logger.info("Loaded configuration from %s", self._config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using default values", self._config_path)
            self._config_data = self._get_defaults()
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Error parsing config file %s: %s, using default values", self._config_path, e)
            self._config_data = self._get_defaults()

    def save(self, config_path: Optional[str] = None):
        """Save current configuration back to file."""
        if config_path is not None:
            self._config_path = str(config_path)
        with open(self._config_path, 'w') as f:
            json.dump(self._config_data, f, indent=2)
        logger.info("Saved configuration to %s", self._config_path)

    def get(self, *keys, default=None) -> Any:
        """
        Get configuration value by key path.

        Examples:
            config.get('camera', 'width')
            config.get('detection', 'confidence_threshold')
        """
        value, _ = self.get_with_description(*keys, default=default)
        return value

    def get_with_description(self, *keys, default=None) -> Tuple[Any, str]:
        """Get configuration value AND description, or (default, "")."""
        current = self._config_data
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return (default, "")

        if isinstance(current, list):
            if len(current) >= 2 and isinstance(current[1], str):
                return (current[0], current[1])
            elif len(current) == 1:
                return (current[0], "")
        return (current, "")

    def set(self, *keys, value):
        """
        Set configuration value, keeping an existing description.

        Example:
            config.set('camera', 'width', value=1280)
        """
        if len(keys) == 0:
            return

        current = self._config_data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        old = current.get(keys[-1])
        if isinstance(old, list) and len(old) >= 2 and isinstance(old[1], str):
            current[keys[-1]] = [value, old[1]]
        else:
            current[keys[-1]] = value

    def section(self, *keys) -> Dict[str, Any]:
        """Plain values of one section, descriptions stripped."""
        node = self.get(*keys, default={})
        if not isinstance(node, dict):
            return {}
        return {k: self.get(*keys, k) for k in node}

    def _get_defaults(self) -> Dict:
        """Return default configuration values."""
        return copy.deepcopy(DEFAULTS)

    @property
    def data(self) -> Dict:
        """Get entire configuration dictionary."""
        return self._config_data


DEFAULTS: Dict[str, Any] = {
    "detection": {
        "confidence_threshold": 0.7,
        "extension_threshold": 0.7,
        "curl_threshold": 0.7,
        "distance_threshold": 0.05,
        "noise_floor": 0.1,
        "max_alternatives": 5,
    },
    "gesture_thresholds": {
        "thumbs_up": {
            "alignment": 0.45,
            "extension_ratio": 1.5,
            "finger_curl": 0.7,
        },
        "palm_gesture": {
            "palm_facing": 0.5,
            "index_open": 1.7,
            "middle_open": 1.8,
            "ring_open": 1.7,
            "pinky_open": 1.5,
            "fist_ratio": 1.0,
            "min_fingers": 3,
        },
    },
    "camera": {
        "index": 0,
        "width": 640,
        "height": 480,
    },
    "performance": {
        "max_hands": 2,
        "min_detection_confidence": 0.7,
        "min_tracking_confidence": 0.5,
    },
    "display": {
        "flip_horizontal": True,
        "show_alternatives": 3,
        "confidence_smoothing": 0.3,
    },
    "logging": {
        "level": "INFO",
        "format": "detailed",
    },
}


def _load_record(config: Config, record_type, *keys):
    values = {}
    for f in fields(record_type):
        value = config.get(*keys, f.name)
        if value is not None:
            values[f.name] = value
    try:
        return record_type(**values)
    except (TypeError, ValueError) as e:
        logger.warning("Invalid %s in config (%s), using defaults", '.'.join(keys), e)
        return record_type()


def load_detection_parameters(config: Config) -> DetectionParameters:
    return _load_record(config, DetectionParameters, 'detection')


def load_thumbs_up_thresholds(config: Config) -> ThumbsUpThresholds:
    return _load_record(config, ThumbsUpThresholds, 'gesture_thresholds', 'thumbs_up')


def load_palm_gesture_thresholds(config: Config) -> PalmGestureThresholds:
    return _load_record(config, PalmGestureThresholds, 'gesture_thresholds', 'palm_gesture')
