import pytest

from client_gesture_led.errors import InvalidObservation
from client_gesture_led.finger_state import (
    Finger,
    GestureLabel,
    Landmark,
    classify,
    finger_ratio,
    finger_ratios,
    finger_states,
    to_observation,
)
from hands import make_hand, transform


def test_open_hand_ratios_match_construction(open_hand):
    ratios = finger_ratios(open_hand)
    expected = dict(zip(Finger, [2.0, 2.1, 2.3, 2.2, 1.9]))
    for finger, value in expected.items():
        assert ratios[finger] == pytest.approx(value)


def test_all_fingers_above_threshold_is_open(open_hand):
    assert all(finger_states(open_hand).values())
    assert classify(open_hand) is GestureLabel.OPEN
    assert classify(open_hand).value == "ON"


@pytest.mark.parametrize("curled", list(Finger))
def test_any_single_curled_finger_is_closed(curled):
    ratios = [2.0] * 5
    ratios[list(Finger).index(curled)] = 1.2
    hand = make_hand(ratios)

    states = finger_states(hand)
    assert states[curled] is False
    assert classify(hand) is GestureLabel.CLOSED


def test_pinky_at_one_point_five_is_closed(closed_hand):
    assert finger_ratio(closed_hand, Finger.PINKY) == pytest.approx(1.5)
    assert classify(closed_hand) is GestureLabel.CLOSED
    assert classify(closed_hand).value == "OFF"


def test_ratio_exactly_at_threshold_is_closed():
    hand = list(make_hand([2.0] * 5, wrist=(0.0, 0.0, 0.0)))
    # Index finger straight along +y; every value is exact in binary
    hand[Finger.INDEX.base] = Landmark(0.0, 0.25, 0.0)
    hand[Finger.INDEX.tip] = Landmark(0.0, 1.7 * 0.25, 0.0)

    assert finger_ratio(hand, Finger.INDEX) == 1.7
    assert finger_states(hand)[Finger.INDEX] is False
    assert classify(hand) is GestureLabel.CLOSED


def test_custom_threshold():
    hand = make_hand([1.6] * 5)
    assert classify(hand) is GestureLabel.CLOSED
    assert classify(hand, threshold=1.5) is GestureLabel.OPEN


@pytest.mark.parametrize("scale", [0.25, 0.5, 2.0, 7.5])
@pytest.mark.parametrize("offset", [(0.0, 0.0, 0.0), (0.3, -0.2, 0.05), (-1.0, 4.0, -0.3)])
@pytest.mark.parametrize("ratios", [
    [2.0, 2.1, 2.3, 2.2, 1.9],
    [2.0, 2.1, 2.3, 2.2, 1.5],
    [1.1, 1.2, 1.3, 1.2, 1.1],
])
def test_classification_invariant_under_scale_and_translation(ratios, scale, offset):
    hand = make_hand(ratios)
    moved = transform(hand, scale=scale, offset=offset)
    assert classify(moved) is classify(hand)


def test_depth_counts_in_distance():
    hand = list(make_hand([2.0] * 5))
    wrist = hand[0]
    # Pull the middle fingertip back onto the wrist's x/y but far away in z
    hand[Finger.MIDDLE.tip] = Landmark(wrist.x, wrist.y, wrist.z + 0.5)
    assert finger_ratio(hand, Finger.MIDDLE) == pytest.approx(5.0)


def test_short_observation_raises_invalid():
    hand = make_hand([2.0] * 5)[:15]
    with pytest.raises(InvalidObservation):
        classify(hand)


def test_empty_and_none_observations_raise_invalid():
    with pytest.raises(InvalidObservation):
        classify(())
    with pytest.raises(InvalidObservation):
        classify(None)


def test_base_on_wrist_raises_invalid():
    hand = list(make_hand([2.0] * 5))
    hand[Finger.RING.base] = hand[0]
    with pytest.raises(InvalidObservation):
        classify(hand)


def test_to_observation_copies_attribute_landmarks():
    class MpLandmark:
        def __init__(self, x, y, z):
            self.x, self.y, self.z = x, y, z

    raw = [MpLandmark(i / 21, 1 - i / 21, -i / 100) for i in range(21)]
    observation = to_observation(raw)

    assert isinstance(observation, tuple)
    assert len(observation) == 21
    assert observation[3] == Landmark(3 / 21, 1 - 3 / 21, -0.03)

