"""
Descriptor Matcher

Scores a hand's metrics against static pose descriptors and ranks the
matches. Descriptors are immutable values; a library is any sequence of them.

    classifier = PoseClassifier(DEFAULT_LIBRARY, DetectionParameters())
    result = classifier.classify(joint_set)
    if result.primary:
        print(result.primary.name, result.primary.confidence)
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

from handpose.config.config_manager import DetectionParameters
from handpose.detectors.gesture_detectors import HandMetrics, compute_hand_metrics
from handpose.detectors.hand_joints import FingerType, HandJointSet
from handpose.detectors.orientation import PalmOrientation
from handpose.utils.math_utils import clamp01

logger = logging.getLogger(__name__)

NOISE_FLOOR = 0.1
MAX_ALTERNATIVES = 5
ORIENTATION_PENALTY = 0.5

CustomScorer = Callable[[HandMetrics], float]


@dataclass(frozen=True)
class ValueRange:
    """Inclusive [min, max] range inside [0, 1]."""
    min: float
    max: float

    def __post_init__(self):
        for name in ("min", "max"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"range {name} must be a number, got {value!r}")
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"range {name} must be in [0, 1], got {value}")
        if self.min > self.max:
            raise ValueError(f"range min {self.min} is greater than max {self.max}")

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2.0

    def penalty(self, value: float) -> float:
        """Multiplier for `value`: 1 inside the range, linearly less outside, floored at 0."""
        if self.contains(value):
            return 1.0
        return max(0.0, 1.0 - min(abs(value - self.min), abs(value - self.max)))


RangeLike = Union[ValueRange, Tuple[float, float]]


def _as_range(value: RangeLike) -> ValueRange:
    if isinstance(value, ValueRange):
        return value
    try:
        low, high = value
    except (TypeError, ValueError):
        raise ValueError(f"expected ValueRange or (min, max), got {value!r}") from None
    return ValueRange(low, high)


def _as_range_map(ranges: Optional[Mapping[FingerType, RangeLike]], label: str) -> Mapping[FingerType, ValueRange]:
    converted = {}
    for finger, value in (ranges or {}).items():
        if not isinstance(finger, FingerType):
            raise ValueError(f"{label} keys must be FingerType, got {finger!r}")
        converted[finger] = _as_range(value)
    return MappingProxyType(converted)


@dataclass(frozen=True, eq=False)
class PoseDescriptor:
    """
    Expected hand configuration for one named pose.

    Fingers without an entry in extension_ranges / curl_ranges are not
    checked. When custom_scorer is set it replaces range scoring entirely.
    Invalid descriptors raise ValueError on construction.
    """
    name: str
    extension_ranges: Mapping[FingerType, ValueRange] = field(default_factory=dict)
    curl_ranges: Mapping[FingerType, ValueRange] = field(default_factory=dict)
    allowed_orientations: frozenset = frozenset(PalmOrientation)
    custom_scorer: Optional[CustomScorer] = None
    description: str = ""

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("descriptor name must be a non-empty string")
        object.__setattr__(self, 'extension_ranges', _as_range_map(self.extension_ranges, 'extension_ranges'))
        object.__setattr__(self, 'curl_ranges', _as_range_map(self.curl_ranges, 'curl_ranges'))

        orientations = frozenset(self.allowed_orientations)
        if not orientations:
            raise ValueError(f"descriptor {self.name!r} allows no palm orientation")
        for o in orientations:
            if not isinstance(o, PalmOrientation):
                raise ValueError(f"descriptor {self.name!r}: {o!r} is not a PalmOrientation")
        object.__setattr__(self, 'allowed_orientations', orientations)

        if self.custom_scorer is not None and not callable(self.custom_scorer):
            raise ValueError(f"descriptor {self.name!r}: custom_scorer must be callable")


@dataclass(frozen=True)
class FingerCheck:
    finger: FingerType
    metric: str  # 'extension' or 'curl'
    actual: float
    expected: ValueRange
    matched: bool
    penalty: float


@dataclass(frozen=True)
class DescriptorEvaluation:
    """
    How one descriptor scored against one frame.

    finger_checks is filled even when a custom scorer decided the confidence,
    so overlays can show which ranges were met.
    """
    descriptor_name: str
    finger_checks: Tuple[FingerCheck, ...]
    palm_orientation: PalmOrientation
    palm_orientation_matched: bool
    used_custom_scorer: bool
    confidence: float

    @property
    def failed_checks(self) -> Tuple[FingerCheck, ...]:
        return tuple(c for c in self.finger_checks if not c.matched)


@dataclass(frozen=True)
class SignCandidate:
    name: str
    confidence: float
    evaluation: Optional[DescriptorEvaluation] = None


@dataclass(frozen=True)
class ClassificationResult:
    primary: Optional[SignCandidate]
    alternatives: Tuple[SignCandidate, ...]
    metrics: HandMetrics

    @property
    def is_detected(self) -> bool:
        return self.primary is not None


def _finger_checks(metrics: HandMetrics, descriptor: PoseDescriptor) -> Tuple[FingerCheck, ...]:
    checks = []
    for metric, ranges in (('extension', descriptor.extension_ranges), ('curl', descriptor.curl_ranges)):
        for finger, expected in ranges.items():
            actual = getattr(metrics.finger(finger), metric)
            checks.append(FingerCheck(finger, metric, actual, expected,
                                      expected.contains(actual), expected.penalty(actual)))
    return tuple(checks)


def evaluate_with_debug(metrics: HandMetrics, descriptor: PoseDescriptor) -> DescriptorEvaluation:
    checks = _finger_checks(metrics, descriptor)
    palm = metrics.orientation.palm
    palm_matched = palm in descriptor.allowed_orientations

    if descriptor.custom_scorer is not None:
        confidence = clamp01(float(descriptor.custom_scorer(metrics)))
        used_custom = True
    else:
        # every term is applied, even after confidence reaches 0
        confidence = 1.0
        for check in checks:
            confidence *= check.penalty
        if not palm_matched:
            confidence *= ORIENTATION_PENALTY
        confidence = clamp01(confidence)
        used_custom = False

    return DescriptorEvaluation(
        descriptor_name=descriptor.name,
        finger_checks=checks,
        palm_orientation=palm,
        palm_orientation_matched=palm_matched,
        used_custom_scorer=used_custom,
        confidence=confidence,
    )


def evaluate(metrics: HandMetrics, descriptor: PoseDescriptor) -> float:
    """Confidence in [0, 1] that `metrics` matches `descriptor`."""
    return evaluate_with_debug(metrics, descriptor).confidence


def rank_candidates(metrics: HandMetrics, library: Iterable[PoseDescriptor],
                    noise_floor: float = NOISE_FLOOR) -> Tuple[SignCandidate, ...]:
    """Candidates above the noise floor, best first, library order on ties."""
    candidates = []
    for descriptor in library:
        evaluation = evaluate_with_debug(metrics, descriptor)
        if evaluation.confidence > noise_floor:
            candidates.append(SignCandidate(descriptor.name, evaluation.confidence, evaluation))
    return tuple(sorted(candidates, key=lambda c: c.confidence, reverse=True))


def classify(joint_set: HandJointSet,
             library: Sequence[PoseDescriptor],
             threshold: float = 0.7,
             noise_floor: float = NOISE_FLOOR,
             max_alternatives: int = MAX_ALTERNATIVES,
             params: Optional[DetectionParameters] = None) -> ClassificationResult:
    """
    Rank every descriptor in `library` against one hand.

    The best candidate is primary only if it reaches `threshold`; the top
    `max_alternatives` candidates are returned regardless. An inactive hand
    gives an empty result.
    """
    metrics = compute_hand_metrics(joint_set, params)
    if not metrics.is_active:
        return ClassificationResult(primary=None, alternatives=(), metrics=metrics)

    ranked = rank_candidates(metrics, library, noise_floor)
    primary = ranked[0] if ranked and ranked[0].confidence >= threshold else None
    alternatives = ranked[:max(0, max_alternatives)]

    if ranked:
        logger.debug("Top match %s %.2f (primary=%s)", ranked[0].name, ranked[0].confidence,
                     primary.name if primary else None)
    return ClassificationResult(primary=primary, alternatives=alternatives, metrics=metrics)


class PoseClassifier:
    """
    Holds a descriptor library and detection parameters.

    The library is stored as a tuple and never changes; parameters can be
    swapped at runtime with `update_parameters`.
    """

    def __init__(self, library: Iterable[PoseDescriptor],
                 parameters: Optional[DetectionParameters] = None,
                 noise_floor: float = NOISE_FLOOR,
                 max_alternatives: int = MAX_ALTERNATIVES):
        self._library = tuple(library)
        for descriptor in self._library:
            if not isinstance(descriptor, PoseDescriptor):
                raise ValueError(f"library entries must be PoseDescriptor, got {descriptor!r}")
        names = [d.name for d in self._library]
        if len(set(names)) != len(names):
            raise ValueError("descriptor names in a library must be unique")
        self._parameters = parameters or DetectionParameters()
        self.noise_floor = float(noise_floor)
        self.max_alternatives = int(max_alternatives)

    @property
    def library(self) -> Tuple[PoseDescriptor, ...]:
        return self._library

    @property
    def parameters(self) -> DetectionParameters:
        return self._parameters

    def update_parameters(self, parameters: DetectionParameters):
        if not isinstance(parameters, DetectionParameters):
            raise ValueError("parameters must be a DetectionParameters")
        self._parameters = parameters

    def classify(self, joint_set: HandJointSet) -> ClassificationResult:
        return classify(joint_set, self._library,
                        threshold=self._parameters.confidence_threshold,
                        noise_floor=self.noise_floor,
                        max_alternatives=self.max_alternatives,
                        params=self._parameters)

    def evaluate_all(self, joint_set: HandJointSet) -> Tuple[DescriptorEvaluation, ...]:
        """Evaluation of every descriptor, unfiltered and in library order."""
        metrics = compute_hand_metrics(joint_set, self._parameters)
        return tuple(evaluate_with_debug(metrics, d) for d in self._library)
