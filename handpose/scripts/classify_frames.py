#!/usr/bin/env python3
"""
Classify recorded hand joint frames.

Input is a JSON list of frames. Each frame maps joint names (HandJointType
names, any case) to a pose:

    [
      {"is_active": true,
       "WRIST": {"position": [0, 0, 0], "rotation": [0, 0, 0, 1]},
       "INDEX_TIP": [0.01, 0.17, 0.0],
       ...},
      ...
    ]

A bare [x, y, z] list is a position with identity rotation.

Usage:
    handpose-classify frames.json
    handpose-classify frames.json --library asl --json
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from handpose.config.config_manager import (
    Config,
    load_detection_parameters,
    load_palm_gesture_thresholds,
    load_thumbs_up_thresholds,
)
from handpose.detectors.descriptor_matcher import ClassificationResult, PoseClassifier
from handpose.detectors.gesture_detectors import (
    PalmGestureResult,
    ThumbsUpResult,
    detect_palm_gesture,
    detect_thumbs_up,
)
from handpose.detectors.hand_joints import HandJointSet, HandJointType, JointPose
from handpose.detectors.sign_descriptors import LIBRARIES
from handpose.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

RESERVED_KEYS = {"is_active"}


def parse_pose(name: str, value: Any) -> JointPose:
    if isinstance(value, dict):
        if "position" not in value:
            raise ValueError(f"joint {name}: missing 'position'")
        return JointPose(value["position"], tuple(value.get("rotation", (0.0, 0.0, 0.0, 1.0))))
    return JointPose(value)


def parse_frame(frame: Dict[str, Any]) -> HandJointSet:
    """Build a HandJointSet from one JSON frame; unknown joint names raise ValueError."""
    if not isinstance(frame, dict):
        raise ValueError(f"frame must be an object, got {type(frame).__name__}")
    joints = {}
    for key, value in frame.items():
        if key in RESERVED_KEYS:
            continue
        try:
            joint = HandJointType[key.upper()]
        except KeyError:
            raise ValueError(f"unknown joint name: {key}") from None
        joints[joint] = parse_pose(key, value)
    return HandJointSet(joints, is_active=bool(frame.get("is_active", True)))


def load_frames(path: str) -> List[HandJointSet]:
    with open(path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError("expected a list of frames")
    return [parse_frame(frame) for frame in data]


def frame_summary(index: int, result: ClassificationResult, thumbs_up: ThumbsUpResult,
                  palm: PalmGestureResult) -> Dict[str, Any]:
    metrics = result.metrics
    return {
        "frame": index,
        "is_active": metrics.is_active,
        "has_all_required_joints": metrics.has_all_required_joints,
        "primary": result.primary.name if result.primary else None,
        "confidence": round(result.primary.confidence, 4) if result.primary else 0.0,
        "alternatives": [{"name": c.name, "confidence": round(c.confidence, 4)} for c in result.alternatives],
        "palm_orientation": metrics.orientation.palm.name,
        "hand_orientation": metrics.orientation.hand.name,
        "thumbs_up": thumbs_up.is_thumbs_up,
        "palm_gesture": palm.gesture.name,
    }


def format_summary(summary: Dict[str, Any]) -> str:
    if not summary["is_active"]:
        return f"frame {summary['frame']}: hand inactive"
    primary = summary["primary"] or "-"
    alternatives = ", ".join(f"{a['name']}={a['confidence']:.2f}" for a in summary["alternatives"])
    text = (f"frame {summary['frame']}: {primary} ({summary['confidence']:.2f})"
            f"  thumbs_up={summary['thumbs_up']}  palm={summary['palm_gesture']}"
            f"  [{alternatives}]")
    if not summary["has_all_required_joints"]:
        text += "  (partial joints)"
    return text


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Classify recorded hand joint frames")
    parser.add_argument('frames', help='JSON file with a list of joint frames')
    parser.add_argument('--config', default=None, help='Path to config.json (default: bundled config)')
    parser.add_argument('--library', choices=sorted(LIBRARIES), default='all',
                        help='Descriptor library (default: all)')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Override the primary-match confidence threshold')
    parser.add_argument('--json', action='store_true', help='Emit one JSON object per frame')
    parser.add_argument('--log-level', default='WARNING', help='Logging level (default: WARNING)')
    args = parser.parse_args(argv)

    setup_logging(args.log_level, format_style='simple')

    config = Config(args.config)
    params = load_detection_parameters(config)
    if args.threshold is not None:
        try:
            params = replace(params, confidence_threshold=args.threshold)
        except ValueError as e:
            parser.error(str(e))

    classifier = PoseClassifier(
        LIBRARIES[args.library], params,
        noise_floor=config.get('detection', 'noise_floor', default=0.1),
        max_alternatives=config.get('detection', 'max_alternatives', default=5),
    )
    thumbs_up_thresholds = load_thumbs_up_thresholds(config)
    palm_thresholds = load_palm_gesture_thresholds(config)

    try:
        frames = load_frames(args.frames)
    except (OSError, ValueError) as e:
        logger.error("Could not read %s: %s", args.frames, e)
        return 1

    for i, joint_set in enumerate(frames):
        summary = frame_summary(
            i,
            classifier.classify(joint_set),
            detect_thumbs_up(joint_set, thumbs_up_thresholds),
            detect_palm_gesture(joint_set, palm_thresholds),
        )
        print(json.dumps(summary) if args.json else format_summary(summary))

    return 0


if __name__ == "__main__":
    sys.exit(main())
