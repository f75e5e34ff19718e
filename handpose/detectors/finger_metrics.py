import numpy as np
from dataclasses import dataclass, field
from typing import Sequence

from handpose.detectors.hand_joints import FingerChain
from handpose.utils.math_utils import EPS, clamp01, joint_angle_deg, normalize

# Below this base-to-tip distance (meters) the finger is too curled for a
# stable direction and the first segment is used instead
DIRECTION_MIN_DISTANCE = 0.01

# A joint bent by this many degrees away from straight counts as fully curled
FULL_BEND_DEGREES = 90.0

# Interior joint weights, proximal to distal
THUMB_CURL_WEIGHTS = (0.4, 0.6)
FINGER_CURL_WEIGHTS = (0.2, 0.4, 0.4)


@dataclass(frozen=True, eq=False)
class FingerMetrics:
    """
    Per-frame metrics for one finger.

    extension: base-to-tip distance over summed segment length (1 = straight)
    curl: joint bend (0 = straight, 1 = fully bent)
    direction: unit vector from base to tip, or zero for a degenerate chain
    """
    extension: float = 0.0
    curl: float = 0.0
    direction: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @classmethod
    def degenerate(cls) -> "FingerMetrics":
        return cls(0.0, 0.0, np.zeros(3))


def joint_bend(angle_deg: float) -> float:
    """Map an interior joint angle to [0, 1]: 180 deg -> 0, 90 deg or less -> 1."""
    return clamp01((180.0 - angle_deg) / FULL_BEND_DEGREES)


def finger_curl_from_angles(points: Sequence[np.ndarray]) -> float:
    """
    Weighted joint-angle curl for a chain of at least 5 joint positions.

    5-joint chains (thumb) use the angles at points[2] and points[3];
    longer chains also use points[4]. Distal joints weigh more.
    """
    if len(points) < 5:
        return 0.0
    weights = THUMB_CURL_WEIGHTS if len(points) < 6 else FINGER_CURL_WEIGHTS
    curl = 0.0
    for k, weight in enumerate(weights):
        i = 2 + k
        curl += weight * joint_bend(joint_angle_deg(points[i - 1], points[i], points[i + 1]))
    return clamp01(curl)


def compute_finger_metrics(chain: FingerChain) -> FingerMetrics:
    """Extension, curl and direction for one finger chain (base to tip)."""
    if len(chain) < 3:
        return FingerMetrics.degenerate()

    points = [pose.position for pose in chain]

    total_length = 0.0
    for a, b in zip(points[:-1], points[1:]):
        total_length += float(np.linalg.norm(b - a))

    base_to_tip = points[-1] - points[0]
    base_to_tip_distance = float(np.linalg.norm(base_to_tip))

    extension = clamp01(base_to_tip_distance / total_length) if total_length > EPS else 0.0

    if len(points) >= 5:
        curl = finger_curl_from_angles(points)
    else:
        curl = clamp01(1.0 - extension)

    if base_to_tip_distance > DIRECTION_MIN_DISTANCE:
        direction = normalize(base_to_tip)
    else:
        direction = normalize(points[1] - points[0])

    return FingerMetrics(extension=extension, curl=curl, direction=direction)
