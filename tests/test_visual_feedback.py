import unittest
import sys
import os
import importlib.util

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from handpose.detectors.descriptor_matcher import classify
from handpose.detectors.gesture_detectors import detect_palm_gesture, detect_thumbs_up
from handpose.detectors.sign_descriptors import DEFAULT_LIBRARY
from hand_fixtures import flat_hand

HAS_CV2 = importlib.util.find_spec('cv2') is not None


@unittest.skipUnless(HAS_CV2, "opencv-python not installed (install the app extra)")
class TestVisualFeedback(unittest.TestCase):
    def setUp(self):
        from handpose.utils.visual_feedback import VisualFeedback
        self.visual = VisualFeedback()
        joint_set = flat_hand()
        self.result = classify(joint_set, DEFAULT_LIBRARY)
        self.thumbs_up = detect_thumbs_up(joint_set)
        self.palm = detect_palm_gesture(joint_set)

    def test_format_hand_lines(self):
        lines = self.visual.format_hand_lines(self.result, {"B": 0.9}, self.thumbs_up, self.palm)
        texts = [text for text, _ in lines]
        self.assertEqual(texts[0], "Match: B (0.90)")
        # primary line, three alternatives, orientation, palm gesture
        self.assertEqual(len(texts), 6)
        self.assertIn("Palm: facing_away  Hand: upright", texts)
        self.assertEqual(texts[-1], "Palm gesture: OPEN_PALM")
        self.assertEqual(lines[-1][1], self.visual.colors.open_palm)

    def test_no_match_line(self):
        result = classify(flat_hand(), [])
        texts = [text for text, _ in self.visual.format_hand_lines(result)]
        self.assertEqual(texts, ["Match: -", "Palm: facing_away  Hand: upright"])

    def test_drawing_modifies_frame(self):
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        landmarks = np.array([(0.3 + 0.01 * i, 0.8 - 0.03 * i) for i in range(21)])
        self.visual.draw_hand_overlay(frame, landmarks, 'left', self.result.metrics.fingers_extended)
        self.assertGreater(int(frame.sum()), 0)

        lines = self.visual.format_hand_lines(self.result)
        next_y = self.visual.draw_results_panel(frame, 'left', lines, origin_y=10)
        self.assertEqual(next_y, 10 + self.visual.line_height * (len(lines) + 1) + 8 + 6)


if __name__ == '__main__':
    unittest.main()
