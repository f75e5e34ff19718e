"""
Static pose descriptor libraries.

ASL_LIBRARY holds the static ASL letters A-G; GESTURE_LIBRARY holds simple
gestures (open palm, fist, thumbs-up). Both are tuples built at import time.
"""

from itertools import combinations
from typing import Dict, Tuple

from handpose.detectors.descriptor_matcher import PoseDescriptor, ValueRange
from handpose.detectors.gesture_detectors import HandMetrics
from handpose.detectors.hand_joints import NON_THUMB_FINGERS, FingerType
from handpose.detectors.orientation import PalmOrientation

F = FingerType
P = PalmOrientation

LOW = ValueRange(0.0, 0.3)
HIGH = ValueRange(0.7, 1.0)

SIDEWAYS_PALM = frozenset({P.FACING_LEFT, P.FACING_RIGHT})
AWAY_PALM = frozenset({P.FACING_AWAY})

# Fingertips closer than this (meters) count as touching in the letter scorers
TIP_PROXIMITY = 0.1
# Fingertips of a flat hand line up within this height spread (meters)
FLAT_HAND_HEIGHT_SPREAD = 0.02


def _ranges(thumb, index, middle, ring, pinky) -> Dict[FingerType, ValueRange]:
    return {F.THUMB: thumb, F.INDEX: index, F.MIDDLE: middle, F.RING: ring, F.PINKY: pinky}


def _all_extended(metrics: HandMetrics, fingers, above: float = 0.7) -> bool:
    return all(metrics.finger(f).extension > above for f in fingers)


def _all_curled(metrics: HandMetrics, fingers, above: float = 0.7) -> bool:
    return all(metrics.finger(f).curl > above for f in fingers)


def score_flat_hand(metrics: HandMetrics) -> float:
    """B: fingers straight and level, thumb folded."""
    heights = [metrics.tip_heights.get(f, 0.0) for f in NON_THUMB_FINGERS]
    spread = max(abs(a - b) for a, b in combinations(heights, 2))
    aligned = spread < FLAT_HAND_HEIGHT_SPREAD
    thumb_tucked = metrics.finger(F.THUMB).curl > 0.7
    extended = _all_extended(metrics, NON_THUMB_FINGERS)

    if aligned and thumb_tucked and extended:
        return 0.95
    elif thumb_tucked and extended:
        return 0.8
    elif extended:
        return 0.6
    return 0.3


def score_c_shape(metrics: HandMetrics) -> float:
    # TODO: score the fingertip arc from tip_distances instead of a fixed value
    return 0.8


def score_index_up_thumb_on_middle(metrics: HandMetrics) -> float:
    """D: thumb meets the middle finger, index points up."""
    distance = metrics.tip_distance(F.THUMB, F.MIDDLE, default=1.0)
    proximity = 1.0 if distance < TIP_PROXIMITY else 0.5
    if metrics.finger(F.INDEX).direction[1] > 0.8:
        return proximity
    return proximity * 0.5


def score_fingertips_on_palm(metrics: HandMetrics) -> float:
    """E: fingertips folded onto the palm, thumb across them."""
    on_palm = all(metrics.touching_palm.get(f, False) for f in NON_THUMB_FINGERS)
    thumb_across = metrics.finger(F.THUMB).direction[1] > 0.0
    curled = _all_curled(metrics, NON_THUMB_FINGERS)

    if on_palm and thumb_across and curled:
        return 0.95
    elif curled and thumb_across:
        return 0.8
    elif curled:
        return 0.6
    return 0.3


def score_thumb_index_circle(metrics: HandMetrics) -> float:
    """F: thumb and index touch, other three fingers up."""
    distance = metrics.tip_distance(F.THUMB, F.INDEX, default=1.0)
    proximity = 1.0 if distance < TIP_PROXIMITY else 0.5
    if _all_extended(metrics, (F.MIDDLE, F.RING, F.PINKY)):
        return proximity
    return proximity * 0.5


def score_index_forward(metrics: HandMetrics) -> float:
    index_forward = metrics.finger(F.INDEX).direction[2] < -0.7
    thumb_to_side = abs(metrics.finger(F.THUMB).direction[0]) > 0.7
    return 0.9 if index_forward and thumb_to_side else 0.5


SIGN_A = PoseDescriptor(
    name="A",
    extension_ranges=_ranges(ValueRange(0.3, 0.7), LOW, LOW, LOW, LOW),
    curl_ranges=_ranges(ValueRange(0.3, 0.7), HIGH, HIGH, HIGH, HIGH),
    allowed_orientations=SIDEWAYS_PALM,
    description="Fist with the thumb resting against the side of the index",
)

SIGN_B = PoseDescriptor(
    name="B",
    extension_ranges=_ranges(LOW, HIGH, HIGH, HIGH, HIGH),
    curl_ranges=_ranges(HIGH, LOW, LOW, LOW, LOW),
    allowed_orientations=AWAY_PALM,
    custom_scorer=score_flat_hand,
    description="Flat hand, fingers together, thumb tucked",
)

SIGN_C = PoseDescriptor(
    name="C",
    extension_ranges=_ranges(ValueRange(0.4, 0.7), *[ValueRange(0.5, 0.8)] * 4),
    curl_ranges=_ranges(*[ValueRange(0.3, 0.6)] * 5),
    allowed_orientations=SIDEWAYS_PALM,
    custom_scorer=score_c_shape,
    description="Hand curved into a C",
)

SIGN_D = PoseDescriptor(
    name="D",
    extension_ranges=_ranges(ValueRange(0.4, 0.7), HIGH, LOW, LOW, LOW),
    curl_ranges=_ranges(ValueRange(0.4, 0.7), LOW, HIGH, HIGH, HIGH),
    allowed_orientations=AWAY_PALM,
    custom_scorer=score_index_up_thumb_on_middle,
    description="Index up, other fingers curled onto the thumb",
)

SIGN_E = PoseDescriptor(
    name="E",
    extension_ranges=_ranges(ValueRange(0.3, 0.6), LOW, LOW, LOW, LOW),
    curl_ranges=_ranges(ValueRange(0.4, 0.7), HIGH, HIGH, HIGH, HIGH),
    allowed_orientations=AWAY_PALM,
    custom_scorer=score_fingertips_on_palm,
    description="Fingertips curled onto the palm, thumb across them",
)

SIGN_F = PoseDescriptor(
    name="F",
    extension_ranges=_ranges(ValueRange(0.4, 0.7), ValueRange(0.4, 0.7), HIGH, HIGH, HIGH),
    curl_ranges=_ranges(ValueRange(0.3, 0.6), ValueRange(0.3, 0.6), LOW, LOW, LOW),
    allowed_orientations=AWAY_PALM,
    custom_scorer=score_thumb_index_circle,
    description="Thumb and index touch, other fingers extended",
)

SIGN_G = PoseDescriptor(
    name="G",
    extension_ranges=_ranges(ValueRange(0.5, 0.8), HIGH, LOW, LOW, LOW),
    curl_ranges=_ranges(LOW, LOW, HIGH, HIGH, HIGH),
    allowed_orientations=SIDEWAYS_PALM,
    custom_scorer=score_index_forward,
    description="Index points forward, thumb out to the side",
)

ASL_LIBRARY: Tuple[PoseDescriptor, ...] = (SIGN_A, SIGN_B, SIGN_C, SIGN_D, SIGN_E, SIGN_F, SIGN_G)


OPEN_PALM = PoseDescriptor(
    name="open_palm",
    extension_ranges=_ranges(ValueRange(0.6, 1.0), HIGH, HIGH, HIGH, HIGH),
    curl_ranges=_ranges(ValueRange(0.0, 0.4), LOW, LOW, LOW, LOW),
    allowed_orientations=frozenset({P.FACING_USER, P.FACING_AWAY}),
    description="All five fingers straight",
)

FIST = PoseDescriptor(
    name="fist",
    extension_ranges={f: ValueRange(0.0, 0.4) for f in NON_THUMB_FINGERS},
    curl_ranges={f: ValueRange(0.6, 1.0) for f in NON_THUMB_FINGERS},
    description="Four fingers curled, thumb anywhere",
)

THUMBS_UP = PoseDescriptor(
    name="thumbs_up",
    extension_ranges=_ranges(ValueRange(0.8, 1.0), *[ValueRange(0.0, 0.4)] * 4),
    curl_ranges=_ranges(ValueRange(0.0, 0.3), *[ValueRange(0.6, 1.0)] * 4),
    allowed_orientations=SIDEWAYS_PALM,
    description="Thumb straight, other fingers curled, palm to the side",
)

GESTURE_LIBRARY: Tuple[PoseDescriptor, ...] = (OPEN_PALM, FIST, THUMBS_UP)

DEFAULT_LIBRARY: Tuple[PoseDescriptor, ...] = ASL_LIBRARY + GESTURE_LIBRARY

LIBRARIES: Dict[str, Tuple[PoseDescriptor, ...]] = {
    "asl": ASL_LIBRARY,
    "gestures": GESTURE_LIBRARY,
    "all": DEFAULT_LIBRARY,
}
