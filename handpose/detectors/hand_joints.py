"""
Hand skeleton model: joint identifiers, joint poses, per-frame joint sets and
the finger chain extractor.
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from handpose.utils.math_utils import landmarks_to_array, quat_rotate

IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)

# Forward axis of a pose in its own frame (OpenXR convention, -Z)
LOCAL_FORWARD = np.array([0.0, 0.0, -1.0])


class HandJointType(Enum):
    PALM = 0
    WRIST = 1
    THUMB_METACARPAL = 2
    THUMB_PROXIMAL = 3
    THUMB_DISTAL = 4
    THUMB_TIP = 5
    INDEX_METACARPAL = 6
    INDEX_PROXIMAL = 7
    INDEX_INTERMEDIATE = 8
    INDEX_DISTAL = 9
    INDEX_TIP = 10
    MIDDLE_METACARPAL = 11
    MIDDLE_PROXIMAL = 12
    MIDDLE_INTERMEDIATE = 13
    MIDDLE_DISTAL = 14
    MIDDLE_TIP = 15
    RING_METACARPAL = 16
    RING_PROXIMAL = 17
    RING_INTERMEDIATE = 18
    RING_DISTAL = 19
    RING_TIP = 20
    LITTLE_METACARPAL = 21
    LITTLE_PROXIMAL = 22
    LITTLE_INTERMEDIATE = 23
    LITTLE_DISTAL = 24
    LITTLE_TIP = 25


class FingerType(Enum):
    THUMB = 0
    INDEX = 1
    MIDDLE = 2
    RING = 3
    PINKY = 4


J = HandJointType

# Joint order from base to tip for every finger
FINGER_CHAINS: Dict[FingerType, Tuple[HandJointType, ...]] = {
    FingerType.THUMB: (J.WRIST, J.THUMB_METACARPAL, J.THUMB_PROXIMAL, J.THUMB_DISTAL, J.THUMB_TIP),
    FingerType.INDEX: (J.WRIST, J.INDEX_METACARPAL, J.INDEX_PROXIMAL, J.INDEX_INTERMEDIATE,
                       J.INDEX_DISTAL, J.INDEX_TIP),
    FingerType.MIDDLE: (J.WRIST, J.MIDDLE_METACARPAL, J.MIDDLE_PROXIMAL, J.MIDDLE_INTERMEDIATE,
                        J.MIDDLE_DISTAL, J.MIDDLE_TIP),
    FingerType.RING: (J.WRIST, J.RING_METACARPAL, J.RING_PROXIMAL, J.RING_INTERMEDIATE,
                      J.RING_DISTAL, J.RING_TIP),
    FingerType.PINKY: (J.WRIST, J.LITTLE_METACARPAL, J.LITTLE_PROXIMAL, J.LITTLE_INTERMEDIATE,
                       J.LITTLE_DISTAL, J.LITTLE_TIP),
}

FINGER_TIPS: Dict[FingerType, HandJointType] = {f: chain[-1] for f, chain in FINGER_CHAINS.items()}

FINGER_METACARPALS: Dict[FingerType, HandJointType] = {f: chain[1] for f, chain in FINGER_CHAINS.items()}

NON_THUMB_FINGERS: Tuple[FingerType, ...] = (
    FingerType.INDEX, FingerType.MIDDLE, FingerType.RING, FingerType.PINKY,
)

# MediaPipe Hand Landmark indices -> skeleton joints.
# MediaPipe has no palm joint and no metacarpal base for the four fingers.
LANDMARK_JOINTS: Tuple[HandJointType, ...] = (
    J.WRIST,
    J.THUMB_METACARPAL, J.THUMB_PROXIMAL, J.THUMB_DISTAL, J.THUMB_TIP,
    J.INDEX_PROXIMAL, J.INDEX_INTERMEDIATE, J.INDEX_DISTAL, J.INDEX_TIP,
    J.MIDDLE_PROXIMAL, J.MIDDLE_INTERMEDIATE, J.MIDDLE_DISTAL, J.MIDDLE_TIP,
    J.RING_PROXIMAL, J.RING_INTERMEDIATE, J.RING_DISTAL, J.RING_TIP,
    J.LITTLE_PROXIMAL, J.LITTLE_INTERMEDIATE, J.LITTLE_DISTAL, J.LITTLE_TIP,
)

# Knuckle landmark -> metacarpal joint estimated from it
ESTIMATED_METACARPALS: Dict[HandJointType, HandJointType] = {
    J.INDEX_PROXIMAL: J.INDEX_METACARPAL,
    J.MIDDLE_PROXIMAL: J.MIDDLE_METACARPAL,
    J.RING_PROXIMAL: J.RING_METACARPAL,
    J.LITTLE_PROXIMAL: J.LITTLE_METACARPAL,
}

# Estimated metacarpal sits this far along wrist -> knuckle
METACARPAL_FRACTION = 0.85


@dataclass(frozen=True, eq=False)
class JointPose:
    """Position (meters) and orientation (unit quaternion x, y, z, w) of one joint."""
    position: np.ndarray
    rotation: Tuple[float, float, float, float] = IDENTITY_ROTATION

    def __post_init__(self):
        pos = np.array(self.position, dtype=float).reshape(3)
        pos.setflags(write=False)
        object.__setattr__(self, 'position', pos)
        object.__setattr__(self, 'rotation', tuple(float(c) for c in self.rotation))
        if len(self.rotation) != 4:
            raise ValueError("rotation must be a quaternion (x, y, z, w)")

    @property
    def forward(self) -> np.ndarray:
        """The pose's forward axis in world space."""
        return quat_rotate(self.rotation, LOCAL_FORWARD)


@dataclass(frozen=True, eq=False)
class HandJointSet:
    """
    All tracked joints of one hand for one frame.

    The set may be partial; callers ask `has_joints` before relying on a
    joint, and `get` returns None for anything absent.
    """
    joints: Mapping[HandJointType, JointPose] = field(default_factory=dict)
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'joints', MappingProxyType(dict(self.joints)))

    def __contains__(self, joint: HandJointType) -> bool:
        return joint in self.joints

    def __len__(self) -> int:
        return len(self.joints)

    def get(self, joint: HandJointType) -> Optional[JointPose]:
        return self.joints.get(joint)

    def position(self, joint: HandJointType) -> Optional[np.ndarray]:
        pose = self.joints.get(joint)
        return None if pose is None else pose.position

    def has_joints(self, required: Iterable[HandJointType]) -> bool:
        return all(j in self.joints for j in required)

    def missing_joints(self, required: Iterable[HandJointType]) -> Tuple[HandJointType, ...]:
        return tuple(j for j in required if j not in self.joints)

    @classmethod
    def from_positions(cls, positions: Mapping[HandJointType, Sequence[float]],
                       is_active: bool = True) -> "HandJointSet":
        """Build a set from bare positions, all with identity rotation."""
        return cls({j: JointPose(p) for j, p in positions.items()}, is_active=is_active)

    @classmethod
    def from_landmarks(cls, landmarks, is_active: bool = True,
                       estimate_palm: bool = False) -> "HandJointSet":
        """
        Build a joint set from 21 MediaPipe-style hand landmarks.

        Accepts a MediaPipe landmark list object (with `.landmark`), a list of
        landmark objects with `.x/.y/.z`, or an (21, 3) array. World landmarks
        (meters) give meaningful distances; normalized image landmarks only
        give meaningful ratios.

        The set lacks PALM and the four finger metacarpals unless
        `estimate_palm` is set, in which case they are approximated from the
        wrist and knuckles (PALM with identity rotation).
        """
        if hasattr(landmarks, 'landmark'):
            landmarks = landmarks.landmark
        pts = landmarks_to_array(landmarks)
        if pts.shape[0] != len(LANDMARK_JOINTS):
            raise ValueError(f"expected {len(LANDMARK_JOINTS)} landmarks, got {pts.shape[0]}")
        joints = {joint: JointPose(pts[i]) for i, joint in enumerate(LANDMARK_JOINTS)}

        if estimate_palm:
            wrist = pts[0]
            for knuckle, metacarpal in ESTIMATED_METACARPALS.items():
                mcp = joints[knuckle].position
                joints[metacarpal] = JointPose(wrist + METACARPAL_FRACTION * (mcp - wrist))
            joints[J.PALM] = JointPose((wrist + joints[J.MIDDLE_PROXIMAL].position) / 2.0)

        return cls(joints, is_active=is_active)


FingerChain = Tuple[JointPose, ...]


def extract_finger_chain(joint_set: HandJointSet, finger: FingerType) -> FingerChain:
    """Available joints of `finger` from base to tip, skipping absent ones."""
    return tuple(joint_set.joints[j] for j in FINGER_CHAINS[finger] if j in joint_set.joints)


# Joints needed for a complete classification frame (everything but PALM)
CLASSIFICATION_JOINTS: Tuple[HandJointType, ...] = tuple(
    dict.fromkeys(j for chain in FINGER_CHAINS.values() for j in chain)
)


def infer_handedness(joint_set: HandJointSet) -> str:
    """
    'left' or 'right', from the index and little metacarpal x coordinates.

    Evaluated per frame; defaults to 'right' when either joint is missing.
    """
    index_meta = joint_set.position(J.INDEX_METACARPAL)
    little_meta = joint_set.position(J.LITTLE_METACARPAL)
    if index_meta is not None and little_meta is not None:
        return 'left' if index_meta[0] > little_meta[0] else 'right'
    return 'right'
