"""
Synthetic hand skeletons for the tests.

Upright hand: wrist at the origin, fingers along +y, palm plane z = 0 (palm
normal +z, FACING_AWAY). Curled fingers fold towards -z with 90 degree bends
at every interior joint.
"""

from handpose.detectors.hand_joints import FingerType, HandJointSet, HandJointType as J

F = FingerType

# Metacarpal base of each finger
METACARPALS = {
    F.INDEX: (0.02, 0.03, 0.0),
    F.MIDDLE: (0.0, 0.03, 0.0),
    F.RING: (-0.02, 0.03, 0.0),
    F.PINKY: (-0.035, 0.025, 0.0),
}

FINGER_JOINTS = {
    F.INDEX: (J.INDEX_METACARPAL, J.INDEX_PROXIMAL, J.INDEX_INTERMEDIATE, J.INDEX_DISTAL, J.INDEX_TIP),
    F.MIDDLE: (J.MIDDLE_METACARPAL, J.MIDDLE_PROXIMAL, J.MIDDLE_INTERMEDIATE, J.MIDDLE_DISTAL, J.MIDDLE_TIP),
    F.RING: (J.RING_METACARPAL, J.RING_PROXIMAL, J.RING_INTERMEDIATE, J.RING_DISTAL, J.RING_TIP),
    F.PINKY: (J.LITTLE_METACARPAL, J.LITTLE_PROXIMAL, J.LITTLE_INTERMEDIATE, J.LITTLE_DISTAL, J.LITTLE_TIP),
}

PALM_POSITION = (0.0, 0.05, 0.0)


def straight_finger(x, meta_y=0.03):
    return [(x, meta_y, 0.0), (x, 0.09, 0.0), (x, 0.13, 0.0), (x, 0.155, 0.0), (x, 0.175, 0.0)]


def curled_finger(x, meta_y=0.03):
    return [(x, meta_y, 0.0), (x, 0.09, 0.0), (x, 0.09, -0.04), (x, 0.05, -0.04), (x, 0.05, -0.02)]


STRAIGHT_THUMB = [(0.025, 0.01, 0.0), (0.035, 0.04, 0.0), (0.045, 0.07, 0.0), (0.052, 0.091, 0.0)]
TUCKED_THUMB = [(0.025, 0.01, 0.0), (0.035, 0.04, 0.0), (0.035, 0.04, -0.03), (0.01, 0.04, -0.03)]


def hand_positions(curled=(), thumb='tucked', with_palm=True):
    positions = {J.WRIST: (0.0, 0.0, 0.0)}
    if with_palm:
        positions[J.PALM] = PALM_POSITION
    thumb_pts = TUCKED_THUMB if thumb == 'tucked' else STRAIGHT_THUMB
    for joint, p in zip((J.THUMB_METACARPAL, J.THUMB_PROXIMAL, J.THUMB_DISTAL, J.THUMB_TIP), thumb_pts):
        positions[joint] = p
    for finger, joints in FINGER_JOINTS.items():
        x, meta_y, _ = METACARPALS[finger]
        pts = curled_finger(x, meta_y) if finger in curled else straight_finger(x, meta_y)
        positions.update(zip(joints, pts))
    return positions


def make_hand(curled=(), thumb='tucked', with_palm=True, drop=(), is_active=True):
    positions = hand_positions(curled, thumb, with_palm)
    for joint in drop:
        positions.pop(joint, None)
    return HandJointSet.from_positions(positions, is_active=is_active)


def flat_hand(**kwargs):
    """All four fingers straight, thumb folded across the palm."""
    return make_hand(curled=(), thumb='tucked', **kwargs)


def fist_hand(**kwargs):
    return make_hand(curled=tuple(METACARPALS), thumb='tucked', **kwargs)


# Thumbs-up skeleton, right hand, palm joint 5 cm in front of the wrist (-z)
THUMB_UP_BASE = {
    J.WRIST: (0.0, 0.0, 0.0),
    J.PALM: (0.0, 0.0, -0.05),
    J.INDEX_METACARPAL: (0.0, 0.0, -0.03),
    J.LITTLE_METACARPAL: (0.04, 0.0, -0.03),
    J.THUMB_METACARPAL: (-0.03, 0.0, -0.03),
    J.THUMB_TIP: (-0.03, 0.08, -0.03),
}

THUMB_UP_FINGER_X = {F.INDEX: 0.0, F.MIDDLE: 0.013, F.RING: 0.026, F.PINKY: 0.04}


def thumbs_up_hand(straight_fingers=(), thumb_tip=None, is_active=True, drop=()):
    positions = dict(THUMB_UP_BASE)
    if thumb_tip is not None:
        positions[J.THUMB_TIP] = thumb_tip
    for finger, x in THUMB_UP_FINGER_X.items():
        _, proximal, intermediate, _, tip = FINGER_JOINTS[finger]
        positions[proximal] = (x, 0.0, -0.06)
        positions[intermediate] = (x, 0.0, -0.09)
        positions[tip] = (x, 0.0, -0.12) if finger in straight_fingers else (x, -0.03, -0.09)
    for joint in drop:
        positions.pop(joint, None)
    return HandJointSet.from_positions(positions, is_active=is_active)
