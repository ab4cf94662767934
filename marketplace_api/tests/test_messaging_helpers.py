import unittest
import uuid
from datetime import datetime, timedelta, timezone

from src.db.models.messaging import Message
from src.services.errors import ValidationFailed
from src.services.messaging import build_message_threads, parse_conversation_key
from src.services.notifications import time_ago
from src.services.profiles import validate_quiet_hours

LISTING_ID = uuid.uuid4()
ALICE = uuid.uuid4()
BOB = uuid.uuid4()
START = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(minutes, parent=None, depth=0, order=0):
    return Message(
        id=uuid.uuid4(),
        listing_id=LISTING_ID,
        sender_id=ALICE,
        recipient_id=BOB,
        message_text=f"message at +{minutes}m",
        message_type="text",
        is_read=False,
        parent_message_id=parent.id if parent is not None else None,
        thread_id=parent.id if parent is not None else None,
        thread_depth=depth,
        thread_order=order,
        is_flagged=False,
        created_at=START + timedelta(minutes=minutes),
    )


class ConversationKeyTests(unittest.TestCase):
    def test_round_trip(self):
        other = uuid.uuid4()
        self.assertEqual(parse_conversation_key(f"{LISTING_ID}-{other}"), (LISTING_ID, other))

    def test_rejects_malformed_keys(self):
        for key in ("", "abc-def", f"{LISTING_ID}_{ALICE}", f"{LISTING_ID}-not-a-uuid-value-at-all-xxxxxxx"):
            with self.subTest(key=key):
                with self.assertRaises(ValidationFailed) as ctx:
                    parse_conversation_key(key)
                self.assertEqual(ctx.exception.message, f"Invalid conversation id: {key}")


class MessageThreadTests(unittest.TestCase):
    def test_replies_are_nested_and_ordered(self):
        root = _message(0)
        second_reply = _message(5, parent=root, depth=1, order=2)
        first_reply = _message(10, parent=root, depth=1, order=1)
        nested = _message(12, parent=first_reply, depth=2, order=1)
        other_root = _message(3)

        threads = build_message_threads([root, second_reply, first_reply, nested, other_root])

        self.assertEqual([t.id for t in threads], [root.id, other_root.id])
        head = threads[0]
        self.assertTrue(head.thread_root)
        self.assertTrue(head.has_replies)
        self.assertEqual(head.reply_count, 2)
        self.assertEqual([r.id for r in head.replies], [first_reply.id, second_reply.id])
        self.assertEqual(head.replies[0].replies[0].id, nested.id)
        self.assertEqual(head.replies[0].replies[0].depth_level, 2)
        self.assertFalse(threads[1].has_replies)

    def test_orphan_replies_are_dropped(self):
        missing_parent = _message(0)
        orphan = _message(1, parent=missing_parent, depth=1, order=1)
        self.assertEqual(build_message_threads([orphan]), [])


class TimeAgoTests(unittest.TestCase):
    def test_buckets(self):
        now = START
        self.assertEqual(time_ago(now - timedelta(seconds=30), now), "Just now")
        self.assertEqual(time_ago(now - timedelta(minutes=5), now), "5m ago")
        self.assertEqual(time_ago(now - timedelta(hours=3, minutes=20), now), "3h ago")
        self.assertEqual(time_ago(now - timedelta(days=2), now), "2d ago")
        self.assertEqual(time_ago(now - timedelta(days=10), now), "Apr 21")

    def test_naive_timestamps_are_utc(self):
        self.assertEqual(time_ago(datetime(2026, 5, 1, 11, 0), START), "1h ago")


class QuietHoursTests(unittest.TestCase):
    def test_disabled_skips_checks(self):
        validate_quiet_hours(False, None, "bogus")

    def test_requires_both_times(self):
        with self.assertRaises(ValidationFailed):
            validate_quiet_hours(True, "22:00", None)

    def test_rejects_bad_format(self):
        with self.assertRaises(ValidationFailed) as ctx:
            validate_quiet_hours(True, "22:00", "24:30")
        self.assertEqual(ctx.exception.message, "Invalid time format. Use HH:MM format (e.g., 22:00)")

    def test_accepts_valid_window(self):
        validate_quiet_hours(True, "22:00", "7:30")


if __name__ == "__main__":
    unittest.main()
