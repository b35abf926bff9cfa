from datetime import datetime, timedelta, timezone

import pytest

from studymate.db.time import as_utc
from studymate.models import Notification
from studymate.models.conversation import build_participants_key


def test_participants_key_is_order_independent():
    assert build_participants_key(7, 12) == build_participants_key(12, 7) == "12:7"


def test_notification_refs_are_canonical_strings():
    notification = Notification.build(
        1, "new_message", {"conversation_id": 42, "post_id": "", "request_id": "9"}
    )

    assert notification.conversation_ref == "42"
    assert notification.post_ref is None
    assert notification.join_request_ref == "9"
    assert notification.payload["conversation_id"] == 42


def test_notification_rejects_unknown_type():
    with pytest.raises(ValueError):
        Notification.build(1, "poke")


def test_as_utc_normalises_naive_and_offset_values():
    naive = datetime(2026, 3, 2, 9, 0)
    shifted = datetime(2026, 3, 2, 11, 0, tzinfo=timezone(timedelta(hours=2)))

    assert as_utc(naive) == as_utc(shifted)
    assert as_utc(naive).tzinfo is not None
    assert as_utc(None) is None
