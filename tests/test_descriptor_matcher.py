import unittest
import sys
import os

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from handpose.config.config_manager import DetectionParameters
from handpose.detectors.descriptor_matcher import (
    MAX_ALTERNATIVES,
    PoseClassifier,
    PoseDescriptor,
    ValueRange,
    classify,
    evaluate,
    evaluate_with_debug,
    rank_candidates,
)
from handpose.detectors.finger_metrics import FingerMetrics
from handpose.detectors.gesture_detectors import HandMetrics
from handpose.detectors.hand_joints import FingerType
from handpose.detectors.orientation import HandOrientationSnapshot, PalmOrientation
from hand_fixtures import flat_hand

F = FingerType
P = PalmOrientation


def uniform_metrics(extension=0.5, curl=0.5, palm=P.FACING_AWAY):
    fingers = {f: FingerMetrics(extension, curl, np.array([0.0, 1.0, 0.0])) for f in FingerType}
    return HandMetrics(fingers=fingers, orientation=HandOrientationSnapshot(palm=palm, has_palm=True))


def fixed(name, score):
    return PoseDescriptor(name=name, custom_scorer=lambda metrics: score)


class TestValueRange(unittest.TestCase):
    def test_invalid_ranges(self):
        for low, high in ((0.5, 0.2), (-0.1, 0.5), (0.0, 1.2), ("a", 1.0), (True, 1.0)):
            with self.assertRaises(ValueError, msg=(low, high)):
                ValueRange(low, high)

    def test_contains_is_inclusive(self):
        r = ValueRange(0.3, 0.7)
        self.assertTrue(r.contains(0.3))
        self.assertTrue(r.contains(0.7))
        self.assertFalse(r.contains(0.71))
        self.assertAlmostEqual(r.midpoint, 0.5)

    def test_penalty_decreases_with_distance(self):
        r = ValueRange(0.4, 0.6)
        self.assertEqual(r.penalty(0.5), 1.0)
        previous = 1.0
        for value in (0.65, 0.75, 0.9, 1.0):
            current = r.penalty(value)
            self.assertLess(current, previous)
            previous = current
        self.assertAlmostEqual(ValueRange(1.0, 1.0).penalty(0.0), 0.0)


class TestPoseDescriptor(unittest.TestCase):
    def test_tuples_become_ranges(self):
        d = PoseDescriptor(name="x", extension_ranges={F.INDEX: (0.1, 0.2)})
        self.assertEqual(d.extension_ranges[F.INDEX], ValueRange(0.1, 0.2))
        with self.assertRaises(TypeError):
            d.extension_ranges[F.MIDDLE] = ValueRange(0.0, 1.0)

    def test_default_allows_every_orientation(self):
        self.assertEqual(PoseDescriptor(name="x").allowed_orientations, frozenset(PalmOrientation))

    def test_invalid_descriptors(self):
        bad = [
            dict(name=""),
            dict(name="x", extension_ranges={"index": (0.0, 1.0)}),
            dict(name="x", curl_ranges={F.INDEX: (0.9, 0.1)}),
            dict(name="x", curl_ranges={F.INDEX: 0.5}),
            dict(name="x", allowed_orientations=frozenset()),
            dict(name="x", allowed_orientations={"facing_user"}),
            dict(name="x", custom_scorer=0.5),
        ]
        for kwargs in bad:
            with self.assertRaises(ValueError, msg=kwargs):
                PoseDescriptor(**kwargs)


class TestEvaluate(unittest.TestCase):
    def setUp(self):
        self.descriptor = PoseDescriptor(
            name="open",
            extension_ranges={f: (0.7, 1.0) for f in FingerType},
            curl_ranges={f: (0.0, 0.3) for f in FingerType},
            allowed_orientations={P.FACING_AWAY},
        )

    def test_perfect_match(self):
        self.assertEqual(evaluate(uniform_metrics(0.9, 0.1), self.descriptor), 1.0)

    def test_orientation_penalty(self):
        evaluation = evaluate_with_debug(uniform_metrics(0.9, 0.1, P.FACING_UP), self.descriptor)
        self.assertFalse(evaluation.palm_orientation_matched)
        self.assertEqual(evaluation.palm_orientation, P.FACING_UP)
        self.assertAlmostEqual(evaluation.confidence, 0.5)

    def test_two_misses_multiply(self):
        metrics = uniform_metrics(0.9, 0.1)
        fingers = dict(metrics.fingers)
        fingers[F.INDEX] = FingerMetrics(0.5, 0.1, np.zeros(3))
        fingers[F.RING] = FingerMetrics(0.5, 0.1, np.zeros(3))
        metrics = HandMetrics(fingers=fingers, orientation=metrics.orientation)

        evaluation = evaluate_with_debug(metrics, self.descriptor)
        self.assertAlmostEqual(evaluation.confidence, 0.64)
        self.assertEqual({(c.finger, c.metric) for c in evaluation.failed_checks},
                         {(F.INDEX, 'extension'), (F.RING, 'extension')})

    def test_confidence_monotonic_in_distance(self):
        scores = [evaluate(uniform_metrics(ext, 0.1), self.descriptor) for ext in (0.7, 0.6, 0.5, 0.3, 0.0)]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertLess(scores[-1], 0.01)

    def test_unchecked_fingers_are_ignored(self):
        d = PoseDescriptor(name="index", extension_ranges={F.INDEX: (0.4, 0.6)})
        self.assertEqual(evaluate(uniform_metrics(0.5, 0.9, P.FACING_DOWN), d), 1.0)

    def test_custom_scorer_is_clamped(self):
        metrics = uniform_metrics()
        self.assertEqual(evaluate(metrics, fixed("high", 1.7)), 1.0)
        self.assertEqual(evaluate(metrics, fixed("low", -1.0)), 0.0)
        self.assertEqual(evaluate(metrics, fixed("nan", float('nan'))), 0.0)

    def test_custom_scorer_replaces_ranges(self):
        d = PoseDescriptor(name="x", extension_ranges={F.INDEX: (0.9, 1.0)},
                           allowed_orientations={P.FACING_UP}, custom_scorer=lambda m: 0.42)
        evaluation = evaluate_with_debug(uniform_metrics(0.1), d)
        self.assertTrue(evaluation.used_custom_scorer)
        self.assertAlmostEqual(evaluation.confidence, 0.42)
        # range checks are still reported
        self.assertEqual(len(evaluation.failed_checks), 1)

    def test_scorer_receives_metrics(self):
        seen = []
        metrics = uniform_metrics()
        evaluate(metrics, PoseDescriptor(name="x", custom_scorer=lambda m: seen.append(m) or 0.5))
        self.assertIs(seen[0], metrics)


class TestRanking(unittest.TestCase):
    def test_noise_floor_is_exclusive(self):
        ranked = rank_candidates(uniform_metrics(), [fixed("a", 0.1), fixed("b", 0.11)])
        self.assertEqual([c.name for c in ranked], ["b"])

    def test_ties_keep_library_order(self):
        library = [fixed("x", 0.8), fixed("y", 0.8), fixed("z", 0.9)]
        self.assertEqual([c.name for c in rank_candidates(uniform_metrics(), library)], ["z", "x", "y"])
        library = [library[1], library[0], library[2]]
        self.assertEqual([c.name for c in rank_candidates(uniform_metrics(), library)], ["z", "y", "x"])


class TestClassify(unittest.TestCase):
    def test_primary_requires_threshold(self):
        result = classify(flat_hand(), [fixed("a", 0.69)], threshold=0.7)
        self.assertIsNone(result.primary)
        self.assertFalse(result.is_detected)
        self.assertEqual([c.name for c in result.alternatives], ["a"])

        result = classify(flat_hand(), [fixed("a", 0.7)], threshold=0.7)
        self.assertEqual(result.primary.name, "a")

    def test_primary_is_first_alternative(self):
        result = classify(flat_hand(), [fixed("a", 0.75), fixed("b", 0.9)])
        self.assertEqual(result.primary.name, "b")
        self.assertEqual(result.alternatives[0], result.primary)

    def test_alternatives_capped(self):
        library = [fixed(str(i), 0.5 + i * 0.05) for i in range(7)]
        result = classify(flat_hand(), library)
        self.assertEqual(len(result.alternatives), MAX_ALTERNATIVES)
        self.assertEqual(result.alternatives[0].name, "6")
        self.assertEqual(len(classify(flat_hand(), library, max_alternatives=2).alternatives), 2)

    def test_empty_library(self):
        result = classify(flat_hand(), [])
        self.assertIsNone(result.primary)
        self.assertEqual(result.alternatives, ())
        self.assertTrue(result.metrics.is_active)

    def test_inactive_hand(self):
        result = classify(flat_hand(is_active=False), [fixed("a", 1.0)])
        self.assertIsNone(result.primary)
        self.assertEqual(result.alternatives, ())
        self.assertFalse(result.metrics.is_active)

    def test_deterministic(self):
        library = [fixed("a", 0.8), fixed("b", 0.6)]
        first = classify(flat_hand(), library)
        second = classify(flat_hand(), library)
        self.assertEqual(first.primary, second.primary)
        self.assertEqual(first.alternatives, second.alternatives)


class TestPoseClassifier(unittest.TestCase):
    def test_rejects_bad_library(self):
        with self.assertRaises(ValueError):
            PoseClassifier([fixed("a", 0.5), fixed("a", 0.6)])
        with self.assertRaises(ValueError):
            PoseClassifier(["a"])

    def test_update_parameters(self):
        classifier = PoseClassifier([fixed("a", 0.75)], DetectionParameters(confidence_threshold=0.8))
        self.assertIsNone(classifier.classify(flat_hand()).primary)

        classifier.update_parameters(DetectionParameters(confidence_threshold=0.7))
        self.assertEqual(classifier.parameters.confidence_threshold, 0.7)
        self.assertEqual(classifier.classify(flat_hand()).primary.name, "a")

        with self.assertRaises(ValueError):
            classifier.update_parameters({"confidence_threshold": 0.5})

    def test_library_is_a_tuple(self):
        library = [fixed("a", 0.5)]
        classifier = PoseClassifier(library)
        library.append(fixed("b", 0.9))
        self.assertEqual(len(classifier.library), 1)

    def test_evaluate_all_keeps_library_order(self):
        classifier = PoseClassifier([fixed("a", 0.05), fixed("b", 0.9)])
        evaluations = classifier.evaluate_all(flat_hand())
        self.assertEqual([e.descriptor_name for e in evaluations], ["a", "b"])
        self.assertAlmostEqual(evaluations[0].confidence, 0.05)


if __name__ == '__main__':
    unittest.main()
