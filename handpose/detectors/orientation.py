import numpy as np
from dataclasses import dataclass, field
from enum import Enum

from handpose.detectors.hand_joints import HandJointSet, HandJointType
from handpose.utils.math_utils import normalize

# |component| a wrist->middle direction must exceed to count as aligned with an axis
HAND_AXIS_THRESHOLD = 0.7


class PalmOrientation(Enum):
    FACING_USER = "facing_user"
    FACING_AWAY = "facing_away"
    FACING_UP = "facing_up"
    FACING_DOWN = "facing_down"
    FACING_LEFT = "facing_left"
    FACING_RIGHT = "facing_right"


class HandOrientation(Enum):
    UPRIGHT = "upright"
    UPSIDE_DOWN = "upside_down"
    ROTATED_LEFT = "rotated_left"
    ROTATED_RIGHT = "rotated_right"
    SIDEWAYS = "sideways"


PALM_JOINTS = (HandJointType.WRIST, HandJointType.INDEX_METACARPAL, HandJointType.LITTLE_METACARPAL)
HAND_JOINTS = (HandJointType.WRIST, HandJointType.MIDDLE_METACARPAL)


@dataclass(frozen=True, eq=False)
class HandOrientationSnapshot:
    """
    Palm-facing direction and whole-hand rotation for one frame.

    has_palm / has_hand are False when the joints needed for that half were
    missing, in which case the label is the fallback (FACING_USER / UPRIGHT).
    """
    palm: PalmOrientation = PalmOrientation.FACING_USER
    hand: HandOrientation = HandOrientation.UPRIGHT
    palm_normal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    has_palm: bool = False
    has_hand: bool = False


def palm_normal(wrist, index_base, pinky_base) -> np.ndarray:
    """Unit normal of the wrist / index base / pinky base plane (zero if degenerate)."""
    wrist = np.asarray(wrist, dtype=float)
    to_index = np.asarray(index_base, dtype=float) - wrist
    to_pinky = np.asarray(pinky_base, dtype=float) - wrist
    return normalize(np.cross(to_index, to_pinky))


def classify_palm_normal(normal) -> PalmOrientation:
    """
    Label a palm normal by its dominant axis.

    Ties go to z, then y, then x. A zero normal is FACING_USER.
    """
    x, y, z = (float(c) for c in normal)
    ax, ay, az = abs(x), abs(y), abs(z)
    if az >= ay and az >= ax:
        return PalmOrientation.FACING_AWAY if z > 0 else PalmOrientation.FACING_USER
    if ay >= ax:
        return PalmOrientation.FACING_DOWN if y > 0 else PalmOrientation.FACING_UP
    return PalmOrientation.FACING_RIGHT if x > 0 else PalmOrientation.FACING_LEFT


def compute_palm_orientation(wrist, index_base, pinky_base) -> PalmOrientation:
    return classify_palm_normal(palm_normal(wrist, index_base, pinky_base))


def compute_hand_orientation(wrist, middle_base) -> HandOrientation:
    """Classify the wrist->middle-base direction; vertical wins over horizontal."""
    direction = normalize(np.asarray(middle_base, dtype=float) - np.asarray(wrist, dtype=float))
    x, y = float(direction[0]), float(direction[1])
    if y > HAND_AXIS_THRESHOLD:
        return HandOrientation.UPRIGHT
    if y < -HAND_AXIS_THRESHOLD:
        return HandOrientation.UPSIDE_DOWN
    if x > HAND_AXIS_THRESHOLD:
        return HandOrientation.ROTATED_RIGHT
    if x < -HAND_AXIS_THRESHOLD:
        return HandOrientation.ROTATED_LEFT
    return HandOrientation.SIDEWAYS


def compute_orientation_snapshot(joint_set: HandJointSet) -> HandOrientationSnapshot:
    palm = PalmOrientation.FACING_USER
    hand = HandOrientation.UPRIGHT
    normal = np.zeros(3)

    has_palm = joint_set.has_joints(PALM_JOINTS)
    if has_palm:
        normal = palm_normal(*(joint_set.position(j) for j in PALM_JOINTS))
        palm = classify_palm_normal(normal)

    has_hand = joint_set.has_joints(HAND_JOINTS)
    if has_hand:
        hand = compute_hand_orientation(*(joint_set.position(j) for j in HAND_JOINTS))

    return HandOrientationSnapshot(palm=palm, hand=hand, palm_normal=normal,
                                   has_palm=has_palm, has_hand=has_hand)
