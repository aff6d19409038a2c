import datetime as dt
import unittest

from harvester.datasource.normalize import (
    RecordNormalizer,
    assemble_balls,
    coerce_int,
    parse_date_text,
)
from harvester.errors import RecordRejected
from harvester.types import DrawRecord


def _csv(numbers):
    return ",".join(f"{n:02d}" for n in numbers)


class RecordNormalizerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.normalizer = RecordNormalizer()

    def test_explicit_fields(self) -> None:
        item = {"period": "114046629", "winNo": _csv(range(1, 21)), "super": "42"}

        record = self.normalizer.normalize(item)

        self.assertEqual(record.period, "114046629")
        self.assertEqual(record.balls, tuple(range(1, 21)))
        self.assertEqual(record.super_number, 42)
        self.assertTrue(record.is_complete)

    def test_twenty_first_token_becomes_super(self) -> None:
        numbers = [5, 12, 3, 80, 44, 17, 29, 61, 70, 8, 33, 2, 56, 19, 47, 75, 38, 66, 11, 24, 51]
        item = {"drawTerm": 114046630, "openShowOrder": [f"{n:02d}" for n in numbers]}

        record = self.normalizer.normalize(item)

        self.assertEqual(record.period, "114046630")
        self.assertEqual(record.balls, tuple(sorted(numbers[:20])))
        self.assertEqual(record.super_number, 51)

    def test_last_ball_is_super_fallback(self) -> None:
        numbers = [9, 1, 2, 3, 4, 5, 6, 7, 8, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19, 77]
        record = self.normalizer.normalize({"period": "114000001", "numbers": numbers})

        self.assertEqual(record.super_number, 77)

    def test_super_fallback_can_be_disabled(self) -> None:
        normalizer = RecordNormalizer(super_fallback_last_ball=False)
        record = normalizer.normalize({"period": "114000001", "numbers": list(range(1, 21))})

        self.assertIsNone(record.super_number)
        self.assertFalse(record.is_complete)

    def test_out_of_range_explicit_super_is_ignored(self) -> None:
        numbers = list(range(1, 22))
        record = self.normalizer.normalize(
            {"period": "114000001", "numbers": numbers, "superNo": "0", "starNo": "99"}
        )

        self.assertEqual(record.super_number, 21)

    def test_slot_fields(self) -> None:
        item = {"issue": "114000002", "date": "2025-08-19"}
        for i in range(1, 21):
            item[f"no{i}"] = str(i + 40)

        record = self.normalizer.normalize(item)

        self.assertEqual(record.balls, tuple(range(41, 61)))
        self.assertEqual(record.date, dt.date(2025, 8, 19))

    def test_token_scan_fallback_skips_period_and_date(self) -> None:
        item = {
            "period": "114000003",
            "openDate": "114/08/19",
            "memo": "draw: 03 03 07 (11) 15",
            "extra": [19, "23;27", 31, 35, 39, 43, 47, 51, 55, 59, 63, 67, 71, 75, 79],
        }

        record = self.normalizer.normalize(item)

        self.assertEqual(
            record.balls,
            (3, 7, 11, 15, 19, 23, 27, 31, 35, 39, 43, 47, 51, 55, 59, 63, 67, 71, 75, 79),
        )
        self.assertEqual(record.date, dt.date(2025, 8, 19))

    def test_token_scan_leaves_explicit_super_out_of_the_balls(self) -> None:
        item = {
            "period": "114000001",
            "super": "42",
            "memo": " ".join(str(n) for n in range(1, 21)),
        }

        record = self.normalizer.normalize(item)

        self.assertEqual(record.balls, tuple(range(1, 21)))
        self.assertEqual(record.super_number, 42)

    def test_token_scan_skips_leading_super_field(self) -> None:
        item = {
            "drawTerm": 114000002,
            "superNo": "07",
            "result_text": ",".join(str(n) for n in range(41, 61)),
        }

        record = self.normalizer.normalize(item)

        self.assertEqual(record.balls, tuple(range(41, 61)))
        self.assertEqual(record.super_number, 7)

    def test_rejects_empty_period(self) -> None:
        with self.assertRaises(RecordRejected) as ctx:
            self.normalizer.normalize({"period": "  ", "winNo": _csv(range(1, 21))})
        self.assertEqual(ctx.exception.reason, "empty period")

    def test_rejects_too_few_distinct_balls(self) -> None:
        numbers = list(range(1, 20)) + [1, 1]
        with self.assertRaises(RecordRejected):
            self.normalizer.normalize({"period": "114000004", "winNo": numbers})

    def test_normalize_many_counts_rejections(self) -> None:
        items = [
            {"period": "114000005", "winNo": _csv(range(1, 21)), "super": 7},
            {"period": "", "winNo": _csv(range(1, 21))},
            "not an object",
        ]

        records, rejected = self.normalizer.normalize_many(items)

        self.assertEqual([r.period for r in records], ["114000005"])
        self.assertEqual(rejected, 2)

    def test_normalization_is_deterministic(self) -> None:
        item = {"term": " 第114000006期 ", "bigShowOrder": " 80, 1 ,79;2|78 3 77 4 76 5 75 6 74 7 73 8 72 9 71 10 "}

        first = self.normalizer.normalize(item)
        second = self.normalizer.normalize(dict(item))

        self.assertEqual(first, second)
        self.assertEqual(first.period, "114000006")
        self.assertEqual(first.super_number, 10)


class HelperTests(unittest.TestCase):
    def test_coerce_int_tolerates_punctuation(self) -> None:
        self.assertEqual(coerce_int(" (42) "), 42)
        self.assertEqual(coerce_int("07."), 7)
        self.assertIsNone(coerce_int("1,2"))
        self.assertIsNone(coerce_int(True))

    def test_parse_date_variants(self) -> None:
        self.assertEqual(parse_date_text("2025/08/19"), dt.date(2025, 8, 19))
        self.assertEqual(parse_date_text("114/08/19"), dt.date(2025, 8, 19))
        self.assertEqual(parse_date_text("20250819"), dt.date(2025, 8, 19))
        self.assertEqual(parse_date_text("2025-08-19T10:05:00"), dt.date(2025, 8, 19))
        self.assertIsNone(parse_date_text("2025/13/40"))

    def test_assemble_balls_keeps_first_distinct(self) -> None:
        tokens = [1, 1, 0, 81] + list(range(2, 22))
        balls, extra = assemble_balls(tokens)
        self.assertEqual(balls, list(range(1, 21)))
        self.assertEqual(extra, 20)


class DrawRecordTests(unittest.TestCase):
    def test_invalid_record_is_never_constructed(self) -> None:
        with self.assertRaises(RecordRejected):
            DrawRecord(period="1", balls=tuple(range(1, 20)))
        with self.assertRaises(RecordRejected):
            DrawRecord(period="1", balls=tuple(range(61, 81)) + (0,))
        with self.assertRaises(RecordRejected):
            DrawRecord(period="1", balls=tuple(range(1, 21)), super_number=81)

    def test_balls_are_stored_sorted(self) -> None:
        record = DrawRecord(period="1", balls=tuple(range(20, 0, -1)), super_number=3)
        self.assertEqual(record.balls, tuple(range(1, 21)))
        self.assertEqual(
            record.to_dict(),
            {"period": "1", "date": "", "balls": list(range(1, 21)), "super": 3},
        )


if __name__ == "__main__":
    unittest.main()
