import unittest
import sys
import os

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handpose.app.gesture_events import GestureTransition, GestureTransitionTracker
from handpose.detectors.gesture_detectors import HandGesture


class TestGestureTransitionTracker(unittest.TestCase):
    def test_reports_only_changes(self):
        tracker = GestureTransitionTracker(initial=HandGesture.OTHER)
        stream = [HandGesture.OTHER, HandGesture.OPEN_PALM, HandGesture.OPEN_PALM,
                  HandGesture.CLOSED_FIST, HandGesture.CLOSED_FIST, HandGesture.OTHER]
        events = [tracker.update('left', g) for g in stream]
        self.assertEqual(events, [None, HandGesture.OPEN_PALM, None, HandGesture.CLOSED_FIST, None, HandGesture.OTHER])

    def test_hands_are_independent(self):
        tracker = GestureTransitionTracker()
        self.assertEqual(tracker.update('left', True), True)
        self.assertEqual(tracker.update('right', True), True)
        self.assertIsNone(tracker.update('left', True))
        self.assertEqual(tracker.last('right'), True)

    def test_transition_record(self):
        tracker = GestureTransitionTracker(initial=False)
        self.assertIsNone(tracker.transition('right', False))
        self.assertEqual(tracker.transition('right', True), GestureTransition('right', False, True))

    def test_reset(self):
        tracker = GestureTransitionTracker(initial=HandGesture.OTHER)
        tracker.update('left', HandGesture.OPEN_PALM)
        tracker.update('right', HandGesture.OPEN_PALM)

        tracker.reset('left')
        self.assertEqual(tracker.last('left'), HandGesture.OTHER)
        self.assertEqual(tracker.last('right'), HandGesture.OPEN_PALM)

        tracker.reset()
        self.assertEqual(tracker.update('right', HandGesture.OPEN_PALM), HandGesture.OPEN_PALM)


if __name__ == '__main__':
    unittest.main()
