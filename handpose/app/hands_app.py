#!/usr/bin/env python3
"""
HANDPOSE - Hand Pose Classifier
Webcam demo

Tracks hands with MediaPipe, classifies each frame against the ASL and
gesture descriptor libraries and shows the ranked matches on the video.
"""

import argparse
import logging
import sys
import time

import cv2
import mediapipe as mp
import numpy as np

from handpose.app.gesture_events import GestureTransitionTracker
from handpose.config.config_manager import (
    Config,
    load_detection_parameters,
    load_palm_gesture_thresholds,
    load_thumbs_up_thresholds,
)
from handpose.detectors.descriptor_matcher import PoseClassifier
from handpose.detectors.gesture_detectors import HandGesture, detect_palm_gesture, detect_thumbs_up
from handpose.detectors.hand_joints import HandJointSet
from handpose.detectors.sign_descriptors import LIBRARIES
from handpose.utils.logging_utils import setup_logging
from handpose.utils.math_utils import EWMA, landmarks_to_array
from handpose.utils.visual_feedback import VisualFeedback

logger = logging.getLogger(__name__)

mp_hands = mp.solutions.hands

# MediaPipe world landmarks are x right, y down, z away from the camera;
# the classifier expects y up and the viewer looking down -z.
WORLD_AXIS_FLIP = np.array([1.0, -1.0, -1.0])


def world_landmarks_to_joint_set(world_landmarks) -> HandJointSet:
    pts = landmarks_to_array(world_landmarks.landmark) * WORLD_AXIS_FLIP
    return HandJointSet.from_landmarks(pts, estimate_palm=True)


class HandPoseApplication:
    """Camera loop: capture, track, classify, draw."""

    def __init__(self, config: Config, camera_idx=None, library: str = 'all'):
        self.config = config

        self.classifier = PoseClassifier(
            LIBRARIES[library],
            load_detection_parameters(config),
            noise_floor=config.get('detection', 'noise_floor', default=0.1),
            max_alternatives=config.get('detection', 'max_alternatives', default=5),
        )
        self.thumbs_up_thresholds = load_thumbs_up_thresholds(config)
        self.palm_thresholds = load_palm_gesture_thresholds(config)
        logger.info("Classifier ready with %d descriptors (%s)", len(self.classifier.library), library)

        if camera_idx is None:
            camera_idx = config.get('camera', 'index', default=0)
        self.cap = cv2.VideoCapture(camera_idx)
        if not self.cap.isOpened():
            raise RuntimeError(f"Could not open camera {camera_idx}")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.get('camera', 'width', default=640))
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.get('camera', 'height', default=480))
        logger.info("Camera initialized: %dx%d",
                    int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

        self.hands = mp_hands.Hands(
            min_detection_confidence=config.get('performance', 'min_detection_confidence', default=0.7),
            min_tracking_confidence=config.get('performance', 'min_tracking_confidence', default=0.5),
            max_num_hands=config.get('performance', 'max_hands', default=2),
        )

        self.visual = VisualFeedback(config)
        self.flip_horizontal = config.get('display', 'flip_horizontal', default=True)
        self.smoothing_alpha = config.get('display', 'confidence_smoothing', default=0.3)

        # Caller-side state: edge-triggered events and display smoothing
        self.sign_events = GestureTransitionTracker()
        self.palm_events = GestureTransitionTracker(initial=HandGesture.OTHER)
        self.smoothers = {}

        self.running = True
        self.frame_count = 0
        self.fps = 0.0
        self.fps_time = time.time()

    def _smoothed(self, hand_label, result):
        """EWMA-smoothed confidence per (hand, candidate) for display only."""
        values = {}
        for candidate in result.alternatives:
            key = (hand_label, candidate.name)
            if key not in self.smoothers:
                self.smoothers[key] = EWMA(alpha=self.smoothing_alpha)
            values[candidate.name] = float(self.smoothers[key].update([candidate.confidence])[0])
        return values

    def process_hand(self, frame, hand_label, image_landmarks, world_landmarks, panel_y):
        joint_set = world_landmarks_to_joint_set(world_landmarks)

        result = self.classifier.classify(joint_set)
        thumbs_up = detect_thumbs_up(joint_set, self.thumbs_up_thresholds)
        palm = detect_palm_gesture(joint_set, self.palm_thresholds)

        sign = result.primary.name if result.primary else None
        if self.sign_events.update(hand_label, sign) is not None:
            logger.info("%s hand: %s", hand_label, sign)
        if self.palm_events.update(hand_label, palm.gesture) is not None:
            logger.info("%s hand palm gesture: %s", hand_label, palm.gesture.name)

        self.visual.draw_hand_overlay(frame, landmarks_to_array(image_landmarks.landmark), hand_label,
                                      result.metrics.fingers_extended)
        lines = self.visual.format_hand_lines(result, self._smoothed(hand_label, result), thumbs_up, palm)
        return self.visual.draw_results_panel(frame, hand_label, lines, origin_y=panel_y)

    def run(self):
        print_controls()
        try:
            while self.running:
                ret, frame_bgr = self.cap.read()
                if not ret:
                    logger.error("Failed to read frame")
                    break
                self.frame_count += 1

                if self.flip_horizontal:
                    frame_bgr = cv2.flip(frame_bgr, 1)

                if self.frame_count % 30 == 0:
                    now = time.time()
                    self.fps = 30.0 / (now - self.fps_time)
                    self.fps_time = now

                frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
                results = self.hands.process(frame_rgb)

                seen = set()
                panel_y = 10
                if results.multi_hand_landmarks and results.multi_hand_world_landmarks:
                    for image_lm, world_lm, handedness in zip(results.multi_hand_landmarks,
                                                              results.multi_hand_world_landmarks,
                                                              results.multi_handedness):
                        hand_label = handedness.classification[0].label.lower()
                        seen.add(hand_label)
                        panel_y = self.process_hand(frame_bgr, hand_label, image_lm, world_lm, panel_y)

                for hand_label in ('left', 'right'):
                    if hand_label not in seen and self.sign_events.last(hand_label) is not None:
                        self.sign_events.update(hand_label, None)
                        self.palm_events.update(hand_label, HandGesture.OTHER)
                        logger.info("%s hand lost", hand_label)

                self.visual.draw_fps(frame_bgr, self.fps)
                cv2.imshow('HANDPOSE', frame_bgr)

                key = cv2.waitKey(1) & 0xFF
                if key in (ord('q'), 27):
                    self.running = False
                elif key == ord('r'):
                    self.reload_config()
        finally:
            self.cleanup()

    def reload_config(self):
        """Re-read the config file and swap detection parameters in place."""
        self.config.reload()
        self.classifier.update_parameters(load_detection_parameters(self.config))
        self.thumbs_up_thresholds = load_thumbs_up_thresholds(self.config)
        self.palm_thresholds = load_palm_gesture_thresholds(self.config)
        logger.info("Parameters reloaded: %s", self.classifier.parameters)

    def cleanup(self):
        logger.info("Cleaning up...")
        if self.cap is not None:
            self.cap.release()
        if self.hands is not None:
            self.hands.close()
        cv2.destroyAllWindows()


def print_controls():
    print("\n" + "=" * 60)
    print("CONTROLS")
    print("=" * 60)
    print("  q / ESC  quit")
    print("  r        reload config.json")
    print("=" * 60 + "\n")


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="HANDPOSE - hand pose classifier webcam demo"
    )
    parser.add_argument(
        '--camera', type=int, default=None,
        help='Camera device index (default: from config)'
    )
    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to config.json (default: bundled config)'
    )
    parser.add_argument(
        '--library', choices=sorted(LIBRARIES), default='all',
        help='Descriptor library to classify against (default: all)'
    )
    parser.add_argument(
        '--log-level', default=None,
        help='Logging level (default: from config)'
    )
    args = parser.parse_args(argv)

    config = Config(args.config)
    setup_logging(args.log_level or config.get('logging', 'level', default='INFO'),
                  format_style=config.get('logging', 'format', default='detailed'))

    try:
        app = HandPoseApplication(config, camera_idx=args.camera, library=args.library)
        app.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
    except RuntimeError as e:
        logger.error("%s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
