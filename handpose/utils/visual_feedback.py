"""
Visual Feedback Overlay for HANDPOSE

Draws the tracked skeleton, per-finger state and the ranked pose matches on
the demo's camera frame.
"""

import cv2
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from handpose.detectors.hand_joints import FingerType

# MediaPipe landmark connections
HAND_CONNECTIONS = [
    # Thumb
    (0, 1), (1, 2), (2, 3), (3, 4),
    # Index
    (0, 5), (5, 6), (6, 7), (7, 8),
    # Middle
    (0, 9), (9, 10), (10, 11), (11, 12),
    # Ring
    (0, 13), (13, 14), (14, 15), (15, 16),
    # Pinky
    (0, 17), (17, 18), (18, 19), (19, 20),
    # Palm
    (5, 9), (9, 13), (13, 17)
]

LANDMARK_TIPS = {
    FingerType.THUMB: 4,
    FingerType.INDEX: 8,
    FingerType.MIDDLE: 12,
    FingerType.RING: 16,
    FingerType.PINKY: 20,
}


@dataclass
class UIColors:
    """BGR palette."""
    left_hand = (255, 255, 0)
    right_hand = (0, 128, 255)

    primary_match = (0, 255, 0)
    alternative = (180, 180, 200)
    thumbs_up = (255, 0, 255)
    open_palm = (255, 150, 200)
    closed_fist = (0, 165, 255)

    background = (30, 20, 20)
    text_primary = (255, 255, 255)
    text_secondary = (180, 180, 200)
    inactive = (120, 100, 100)


class VisualFeedback:
    """OpenCV overlays for the demo app."""

    def __init__(self, config=None):
        self.colors = UIColors()
        if config is not None:
            self.show_alternatives = int(config.get('display', 'show_alternatives', default=3))
        else:
            self.show_alternatives = 3
        self.panel_width = 260
        self.line_height = 18
        self.bg_alpha = 0.55
        self.dim_factor = 0.4

    def hand_color(self, hand_label: str):
        return self.colors.left_hand if hand_label == 'left' else self.colors.right_hand

    def draw_hand_overlay(self, frame, image_landmarks: np.ndarray, hand_label: str = 'right',
                          fingers_extended: Optional[Dict[FingerType, bool]] = None):
        """
        Draw skeleton and fingertips from normalized image landmarks (21 x 2+).

        Extended fingers get a full-colour tip, folded ones a dimmed one.
        """
        h, w = frame.shape[:2]
        color = self.hand_color(hand_label)
        pts = [(int(p[0] * w), int(p[1] * h)) for p in image_landmarks]

        for start_idx, end_idx in HAND_CONNECTIONS:
            cv2.line(frame, pts[start_idx], pts[end_idx], color, 2)

        for finger, idx in LANDMARK_TIPS.items():
            extended = bool(fingers_extended.get(finger, False)) if fingers_extended else False
            if extended:
                cv2.circle(frame, pts[idx], 6, color, -1)
            else:
                dim_color = tuple(int(c * self.dim_factor) for c in color)
                cv2.circle(frame, pts[idx], 4, dim_color, -1)

    def draw_results_panel(self, frame, hand_label: str, lines: Sequence[tuple], origin_x: int = 10,
                           origin_y: int = 10):
        """
        Draw a translucent panel of (text, color) lines.

        Returns the y coordinate below the panel.
        """
        height = self.line_height * (len(lines) + 1) + 8
        overlay = frame.copy()
        cv2.rectangle(overlay, (origin_x, origin_y), (origin_x + self.panel_width, origin_y + height),
                      self.colors.background, -1)
        cv2.addWeighted(overlay, self.bg_alpha, frame, 1.0 - self.bg_alpha, 0, frame)

        y = origin_y + self.line_height
        cv2.putText(frame, f"{hand_label.upper()} HAND", (origin_x + 8, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, self.hand_color(hand_label), 1, cv2.LINE_AA)
        for text, color in lines:
            y += self.line_height
            cv2.putText(frame, text, (origin_x + 8, y),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, color, 1, cv2.LINE_AA)
        return origin_y + height + 6

    def format_hand_lines(self, result, smoothed: Optional[Dict[str, float]] = None,
                          thumbs_up=None, palm_gesture=None):
        """
        Panel lines for one hand from a ClassificationResult and detector results.

        `smoothed` maps candidate name -> displayed confidence.
        """
        smoothed = smoothed or {}
        lines = []
        if result.primary is not None:
            conf = smoothed.get(result.primary.name, result.primary.confidence)
            lines.append((f"Match: {result.primary.name} ({conf:.2f})", self.colors.primary_match))
        else:
            lines.append(("Match: -", self.colors.inactive))

        for candidate in result.alternatives[:self.show_alternatives]:
            conf = smoothed.get(candidate.name, candidate.confidence)
            lines.append((f"  {candidate.name:<10} {conf:.2f}", self.colors.alternative))

        orientation = result.metrics.orientation
        lines.append((f"Palm: {orientation.palm.value}  Hand: {orientation.hand.value}",
                      self.colors.text_secondary))

        if thumbs_up is not None and thumbs_up.is_thumbs_up:
            lines.append(("THUMBS UP", self.colors.thumbs_up))
        if palm_gesture is not None:
            name = palm_gesture.gesture.name
            color = {
                'OPEN_PALM': self.colors.open_palm,
                'CLOSED_FIST': self.colors.closed_fist,
            }.get(name, self.colors.inactive)
            lines.append((f"Palm gesture: {name}", color))
        return lines

    def draw_fps(self, frame, fps: float):
        w = frame.shape[1]
        cv2.putText(frame, f"FPS: {fps:.1f}", (w - 130, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2, cv2.LINE_AA)
