import logging
import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
from typing import Dict, Optional, Tuple

from handpose.config.config_manager import DetectionParameters, PalmGestureThresholds, ThumbsUpThresholds
from handpose.detectors.finger_metrics import FingerMetrics, compute_finger_metrics
from handpose.detectors.hand_joints import (
    CLASSIFICATION_JOINTS,
    FINGER_METACARPALS,
    FINGER_TIPS,
    NON_THUMB_FINGERS,
    FingerType,
    HandJointSet,
    HandJointType,
    extract_finger_chain,
    infer_handedness,
)
from handpose.detectors.orientation import HandOrientationSnapshot, compute_orientation_snapshot
from handpose.utils.math_utils import EPS, euclidean, normalize

logger = logging.getLogger(__name__)

J = HandJointType

# Fingertip within this distance (meters) of the palm centre touches the palm
PALM_TOUCH_DISTANCE = 0.03

PALM_CENTER_JOINTS = (J.WRIST, J.INDEX_METACARPAL, J.LITTLE_METACARPAL)

FingerPair = Tuple[FingerType, FingerType]


# Data Structures

@dataclass(frozen=True, eq=False)
class HandMetrics:
    """
    Everything descriptors score against, computed once per frame.

    Distances are in meters. tip_distances only holds pairs whose tips are
    both present, keyed in FingerType order (use `tip_distance` to look up
    either order).
    """
    fingers: Dict[FingerType, FingerMetrics] = field(default_factory=dict)
    orientation: HandOrientationSnapshot = field(default_factory=HandOrientationSnapshot)

    tip_distances: Dict[FingerPair, float] = field(default_factory=dict)
    touching_palm: Dict[FingerType, bool] = field(default_factory=dict)
    tip_heights: Dict[FingerType, float] = field(default_factory=dict)
    contacts: Tuple[FingerPair, ...] = ()

    fingers_extended: Dict[FingerType, bool] = field(default_factory=dict)
    fingers_curled: Dict[FingerType, bool] = field(default_factory=dict)

    is_active: bool = True
    has_all_required_joints: bool = False

    def finger(self, finger: FingerType) -> FingerMetrics:
        return self.fingers.get(finger) or FingerMetrics.degenerate()

    def tip_distance(self, a: FingerType, b: FingerType, default: Optional[float] = None) -> Optional[float]:
        if (a, b) in self.tip_distances:
            return self.tip_distances[(a, b)]
        return self.tip_distances.get((b, a), default)

    @classmethod
    def inactive(cls, has_all_required_joints: bool = False) -> "HandMetrics":
        """Zero-valued metrics for a hand that is not tracked."""
        return cls(
            fingers={f: FingerMetrics.degenerate() for f in FingerType},
            touching_palm={f: False for f in FingerType},
            tip_heights={f: 0.0 for f in FingerType},
            fingers_extended={f: False for f in FingerType},
            fingers_curled={f: False for f in FingerType},
            is_active=False,
            has_all_required_joints=has_all_required_joints,
        )


def compute_hand_metrics(joint_set: HandJointSet,
                         params: Optional[DetectionParameters] = None) -> HandMetrics:
    params = params or DetectionParameters()
    has_all = joint_set.has_joints(CLASSIFICATION_JOINTS)
    if not joint_set.is_active:
        return HandMetrics.inactive(has_all)

    fingers = {f: compute_finger_metrics(extract_finger_chain(joint_set, f)) for f in FingerType}
    orientation = compute_orientation_snapshot(joint_set)

    tips = {f: joint_set.position(FINGER_TIPS[f]) for f in FingerType}
    present = [f for f in FingerType if tips[f] is not None]

    tip_distances = {(a, b): float(euclidean(tips[a], tips[b])) for a, b in combinations(present, 2)}
    contacts = tuple(pair for pair, d in tip_distances.items() if d < params.distance_threshold)

    palm_center = None
    if joint_set.has_joints(PALM_CENTER_JOINTS):
        palm_center = np.mean([joint_set.position(j) for j in PALM_CENTER_JOINTS], axis=0)
    touching_palm = {
        f: palm_center is not None and tips[f] is not None
        and float(euclidean(tips[f], palm_center)) < PALM_TOUCH_DISTANCE
        for f in FingerType
    }

    wrist = joint_set.position(J.WRIST)
    tip_heights = {
        f: float(tips[f][1] - wrist[1]) if wrist is not None and tips[f] is not None else 0.0
        for f in FingerType
    }

    metrics = HandMetrics(
        fingers=fingers,
        orientation=orientation,
        tip_distances=tip_distances,
        touching_palm=touching_palm,
        tip_heights=tip_heights,
        contacts=contacts,
        fingers_extended={f: m.extension >= params.extension_threshold for f, m in fingers.items()},
        fingers_curled={f: m.curl >= params.curl_threshold for f, m in fingers.items()},
        is_active=True,
        has_all_required_joints=has_all,
    )
    if not has_all:
        logger.debug("Hand metrics from partial joint set, missing %s",
                     [j.name for j in joint_set.missing_joints(CLASSIFICATION_JOINTS)])
    return metrics


# Thumbs-up

THUMBS_UP_CURL_JOINTS: Dict[FingerType, Tuple[HandJointType, HandJointType, HandJointType]] = {
    FingerType.INDEX: (J.INDEX_PROXIMAL, J.INDEX_INTERMEDIATE, J.INDEX_TIP),
    FingerType.MIDDLE: (J.MIDDLE_PROXIMAL, J.MIDDLE_INTERMEDIATE, J.MIDDLE_TIP),
    FingerType.RING: (J.RING_PROXIMAL, J.RING_INTERMEDIATE, J.RING_TIP),
    FingerType.PINKY: (J.LITTLE_PROXIMAL, J.LITTLE_INTERMEDIATE, J.LITTLE_TIP),
}

THUMBS_UP_JOINTS: Tuple[HandJointType, ...] = (
    J.WRIST, J.PALM, J.THUMB_METACARPAL, J.THUMB_TIP, J.INDEX_METACARPAL,
) + tuple(j for chain in THUMBS_UP_CURL_JOINTS.values() for j in chain)


@dataclass
class ThumbsUpDebug:
    """Intermediate values of one thumbs-up evaluation."""
    has_required_joints: bool = False
    missing_joints: Tuple[HandJointType, ...] = ()
    handedness: str = 'right'
    up_vector: np.ndarray = field(default_factory=lambda: np.zeros(3))
    thumb_alignment: float = 0.0
    thumb_extension_ratio: float = 0.0
    curl_proxies: Dict[FingerType, float] = field(default_factory=dict)
    thumb_up: bool = False
    thumb_extended: bool = False
    fingers_curled: Dict[FingerType, bool] = field(default_factory=dict)
    thresholds: ThumbsUpThresholds = field(default_factory=ThumbsUpThresholds)
    reason: Optional[str] = None


@dataclass
class ThumbsUpResult:
    is_thumbs_up: bool
    # fraction of the six conditions met, 1.0 only when detected
    confidence: float = 0.0
    debug: ThumbsUpDebug = field(default_factory=ThumbsUpDebug)


def segment_alignment(proximal, intermediate, tip) -> float:
    """
    dot(normalize(prox->inter), normalize(inter->tip)).

    1 for a straight finger, 0 for a right-angle bend, negative beyond.
    Equals -cos of the interior joint angle at `intermediate`.
    """
    a = normalize(np.asarray(intermediate, dtype=float) - np.asarray(proximal, dtype=float))
    b = normalize(np.asarray(tip, dtype=float) - np.asarray(intermediate, dtype=float))
    return float(np.dot(a, b))


def evaluate_thumbs_up(alignment: float, extension_ratio: float,
                       curl_proxies: Dict[FingerType, float],
                       thresholds: Optional[ThumbsUpThresholds] = None) -> ThumbsUpResult:
    """
    Decision step of the thumbs-up detector on precomputed values.

    All of: thumb aligned with hand up, thumb extended, and each of the four
    other fingers curled (segment alignment below threshold).
    """
    thresholds = thresholds or ThumbsUpThresholds()
    thumb_up = alignment > thresholds.alignment
    thumb_extended = extension_ratio > thresholds.extension_ratio
    fingers_curled = {f: curl_proxies.get(f, 1.0) < thresholds.finger_curl for f in NON_THUMB_FINGERS}

    checks = [thumb_up, thumb_extended] + [fingers_curled[f] for f in NON_THUMB_FINGERS]
    is_thumbs_up = all(checks)

    if not thumb_up:
        reason = 'thumb_not_up'
    elif not thumb_extended:
        reason = 'thumb_not_extended'
    elif not all(fingers_curled.values()):
        reason = 'fingers_not_curled'
    else:
        reason = 'thumbs_up_detected'

    debug = ThumbsUpDebug(
        has_required_joints=True,
        thumb_alignment=float(alignment),
        thumb_extension_ratio=float(extension_ratio),
        curl_proxies=dict(curl_proxies),
        thumb_up=thumb_up,
        thumb_extended=thumb_extended,
        fingers_curled=fingers_curled,
        thresholds=thresholds,
        reason=reason,
    )
    return ThumbsUpResult(is_thumbs_up=is_thumbs_up, confidence=sum(checks) / len(checks), debug=debug)


def detect_thumbs_up(joint_set: HandJointSet,
                     thresholds: Optional[ThumbsUpThresholds] = None) -> ThumbsUpResult:
    thresholds = thresholds or ThumbsUpThresholds()

    if not joint_set.is_active:
        return ThumbsUpResult(False, debug=ThumbsUpDebug(thresholds=thresholds, reason='hand_inactive'))

    missing = joint_set.missing_joints(THUMBS_UP_JOINTS)
    if missing:
        return ThumbsUpResult(False, debug=ThumbsUpDebug(missing_joints=missing, thresholds=thresholds,
                                                         reason='missing_joints'))

    p = joint_set.position
    handedness = infer_handedness(joint_set)

    # Hand frame
    forward = p(J.PALM) - p(J.WRIST)
    if handedness == 'left':
        side = p(J.INDEX_METACARPAL) - p(J.THUMB_METACARPAL)
    else:
        side = p(J.THUMB_METACARPAL) - p(J.INDEX_METACARPAL)
    up = normalize(np.cross(forward, side))

    thumb_direction = normalize(p(J.THUMB_TIP) - p(J.THUMB_METACARPAL))
    alignment = float(np.dot(thumb_direction, up))

    base_distance = float(euclidean(p(J.THUMB_METACARPAL), p(J.WRIST)))
    tip_distance = float(euclidean(p(J.THUMB_TIP), p(J.WRIST)))
    extension_ratio = tip_distance / base_distance if base_distance > EPS else 0.0

    curl_proxies = {f: segment_alignment(*(p(j) for j in joints)) for f, joints in THUMBS_UP_CURL_JOINTS.items()}

    result = evaluate_thumbs_up(alignment, extension_ratio, curl_proxies, thresholds)
    result.debug.handedness = handedness
    result.debug.up_vector = up

    logger.debug("Thumbs-up %s: alignment=%.3f ratio=%.3f proxies=%s -> %s",
                 handedness, alignment, extension_ratio,
                 {f.name: round(v, 3) for f, v in curl_proxies.items()}, result.debug.reason)
    return result


# Open palm / closed fist

class HandGesture(Enum):
    OTHER = "other"
    OPEN_PALM = "open_palm"
    CLOSED_FIST = "closed_fist"


TOWARD_CAMERA = np.array([0.0, 0.0, -1.0])


@dataclass
class PalmGestureDebug:
    palm_facing_dot: float = 0.0
    palm_facing_user: bool = False
    palm_length: float = 0.0
    open_ratios: Dict[FingerType, float] = field(default_factory=dict)
    open_count: int = 0
    closed_ratios: Dict[FingerType, float] = field(default_factory=dict)
    closed_count: int = 0
    missing_joints: Tuple[HandJointType, ...] = ()
    reason: Optional[str] = None


@dataclass
class PalmGestureResult:
    gesture: HandGesture
    # fingertip positions (meters), only filled for OPEN_PALM
    fingertip_positions: Dict[FingerType, np.ndarray] = field(default_factory=dict)
    debug: PalmGestureDebug = field(default_factory=PalmGestureDebug)


OPEN_JOINTS = (J.WRIST,) + tuple(FINGER_METACARPALS[f] for f in NON_THUMB_FINGERS) + \
    tuple(FINGER_TIPS[f] for f in NON_THUMB_FINGERS)
CLOSED_JOINTS = (J.WRIST, J.PALM) + tuple(FINGER_TIPS[f] for f in NON_THUMB_FINGERS)


def _open_thresholds(thresholds: PalmGestureThresholds) -> Dict[FingerType, float]:
    return {
        FingerType.INDEX: thresholds.index_open,
        FingerType.MIDDLE: thresholds.middle_open,
        FingerType.RING: thresholds.ring_open,
        FingerType.PINKY: thresholds.pinky_open,
    }


def _check_open(joint_set: HandJointSet, thresholds: PalmGestureThresholds, debug: PalmGestureDebug) -> bool:
    if not joint_set.has_joints(OPEN_JOINTS):
        return False
    wrist = joint_set.position(J.WRIST)
    palm_length = float(np.mean([euclidean(wrist, joint_set.position(FINGER_METACARPALS[f]))
                                 for f in NON_THUMB_FINGERS]))
    debug.palm_length = palm_length
    if palm_length <= EPS:
        return False

    limits = _open_thresholds(thresholds)
    debug.open_ratios = {f: float(euclidean(wrist, joint_set.position(FINGER_TIPS[f]))) / palm_length
                         for f in NON_THUMB_FINGERS}
    debug.open_count = sum(1 for f, r in debug.open_ratios.items() if r > limits[f])
    return debug.open_count >= thresholds.min_fingers


def _check_closed(joint_set: HandJointSet, thresholds: PalmGestureThresholds, debug: PalmGestureDebug) -> bool:
    if not joint_set.has_joints(CLOSED_JOINTS):
        return False
    palm = joint_set.position(J.PALM)
    reference = float(euclidean(joint_set.position(J.WRIST), palm))
    if reference <= EPS:
        return False

    debug.closed_ratios = {f: float(euclidean(joint_set.position(FINGER_TIPS[f]), palm)) / reference
                           for f in NON_THUMB_FINGERS}
    debug.closed_count = sum(1 for r in debug.closed_ratios.values() if r < thresholds.fist_ratio)
    return debug.closed_count >= thresholds.min_fingers


def detect_palm_gesture(joint_set: HandJointSet,
                        thresholds: Optional[PalmGestureThresholds] = None) -> PalmGestureResult:
    """
    Classify one hand as OPEN_PALM, CLOSED_FIST or OTHER.

    Both gestures need the palm facing the user (palm forward axis towards
    the camera). Open is checked before closed.
    """
    thresholds = thresholds or PalmGestureThresholds()
    debug = PalmGestureDebug()

    if not joint_set.is_active:
        debug.reason = 'hand_inactive'
        return PalmGestureResult(HandGesture.OTHER, debug=debug)

    palm_pose = joint_set.get(J.PALM)
    if palm_pose is None:
        debug.reason = 'no_palm_joint'
        debug.missing_joints = (J.PALM,)
        return PalmGestureResult(HandGesture.OTHER, debug=debug)

    debug.missing_joints = joint_set.missing_joints(tuple(dict.fromkeys(OPEN_JOINTS + CLOSED_JOINTS)))
    debug.palm_facing_dot = float(np.dot(palm_pose.forward, TOWARD_CAMERA))
    debug.palm_facing_user = debug.palm_facing_dot > thresholds.palm_facing
    logger.debug("Palm forward=%s dot=%.3f", palm_pose.forward, debug.palm_facing_dot)

    if not debug.palm_facing_user:
        debug.reason = 'palm_not_facing_user'
        return PalmGestureResult(HandGesture.OTHER, debug=debug)

    if _check_open(joint_set, thresholds, debug):
        debug.reason = 'open_palm_detected'
        tips = {f: joint_set.position(FINGER_TIPS[f]) for f in FingerType
                if joint_set.position(FINGER_TIPS[f]) is not None}
        return PalmGestureResult(HandGesture.OPEN_PALM, fingertip_positions=tips, debug=debug)

    if _check_closed(joint_set, thresholds, debug):
        debug.reason = 'closed_fist_detected'
        return PalmGestureResult(HandGesture.CLOSED_FIST, debug=debug)

    debug.reason = 'no_gesture'
    logger.debug("Palm gesture ratios open=%s closed=%s",
                 {f.name: round(r, 2) for f, r in debug.open_ratios.items()},
                 {f.name: round(r, 2) for f, r in debug.closed_ratios.items()})
    return PalmGestureResult(HandGesture.OTHER, debug=debug)
