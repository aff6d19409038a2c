import datetime as dt
import unittest

from harvester.config import PagingSettings
from harvester.datasource.normalize import RecordNormalizer
from harvester.datasource.pagination import PaginationController, StopReason, decide_stop
from harvester.types import CandidateRequestShape, DateFormat, FetchAttemptResult, FetchOutcome

SHAPE = CandidateRequestShape(
    endpoint="https://a.test/api",
    date_key="openDate",
    date_format=DateFormat.ISO,
    page_key="pageNum",
)
DAY = dt.date(2025, 8, 19)


def _row(period: int) -> dict:
    return {"drawTerm": str(period), "openShowOrder": list(range(1, 21)), "superNo": "5"}


def _page(start: int, count: int, total=None) -> dict:
    content = {"bingoQueryResult": [_row(start + i) for i in range(count)]}
    if total is not None:
        content["totalSize"] = total
    return {"content": content}


class FakePager:
    def __init__(self, pages) -> None:
        self._pages = pages
        self.requested = []

    def __call__(self, shape, target_date, page):
        self.requested.append(page)
        if callable(self._pages):
            payload = self._pages(page)
        else:
            payload = self._pages[page] if page < len(self._pages) else None
        if payload is None:
            return FetchAttemptResult(FetchOutcome.EMPTY)
        return FetchAttemptResult(FetchOutcome.SUCCESS, payload=payload)


class PaginationControllerTests(unittest.TestCase):
    def _run(self, pager, paging, first_payload=None):
        controller = PaginationController(pager, RecordNormalizer(), paging)
        return controller.run(SHAPE, DAY, first_payload=first_payload)

    def test_short_page_stops(self) -> None:
        pager = FakePager([_page(100, 3), _page(103, 2)])

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10))

        self.assertEqual(result.stop_reason, StopReason.SHORT_PAGE)
        self.assertEqual(pager.requested, [0, 1])
        self.assertEqual([r.period for r in result.records], ["100", "101", "102", "103", "104"])

    def test_first_payload_is_reused(self) -> None:
        pager = FakePager([None, _page(103, 1)])

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10), first_payload=_page(100, 3))

        self.assertEqual(pager.requested, [1])
        self.assertEqual(result.pages, 2)
        self.assertEqual(len(result.records), 4)

    def test_ceiling_bounds_endless_server(self) -> None:
        pager = FakePager(lambda page: _page(1000 + page * 3, 3))

        result = self._run(pager, PagingSettings(page_size=3, max_pages=4))

        self.assertEqual(result.stop_reason, StopReason.MAX_PAGES)
        self.assertEqual(result.pages, 4)
        self.assertEqual(len(pager.requested), 4)

    def test_total_hint_wins_over_short_pages(self) -> None:
        # Server caps pages at 2 rows although 3 were requested.
        pager = FakePager(lambda page: _page(200 + page * 2, 2, total=5) if page < 3 else None)

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10))

        self.assertEqual(result.stop_reason, StopReason.TOTAL_REACHED)
        self.assertEqual(pager.requested, [0, 1, 2])

    def test_empty_page_stops(self) -> None:
        pager = FakePager([_page(100, 3), {"content": {"bingoQueryResult": []}}])

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10))

        self.assertEqual(result.stop_reason, StopReason.EMPTY_PAGE)
        self.assertEqual(len(result.records), 3)

    def test_repeated_page_is_detected(self) -> None:
        pager = FakePager(lambda page: _page(100, 3))

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10))

        self.assertEqual(result.stop_reason, StopReason.STALLED)
        self.assertEqual(pager.requested, [0, 1])
        self.assertEqual(len(result.records), 3)

    def test_fetch_failure_stops(self) -> None:
        pager = FakePager([_page(100, 3)])

        result = self._run(pager, PagingSettings(page_size=3, max_pages=10))

        self.assertEqual(result.stop_reason, StopReason.FETCH_FAILED)
        self.assertEqual(len(result.records), 3)

    def test_loop_never_exceeds_ceiling(self) -> None:
        for max_pages in range(0, 6):
            pager = FakePager(lambda page: _page(page * 10, 10))
            self._run(pager, PagingSettings(page_size=10, max_pages=max_pages))
            self.assertLessEqual(len(pager.requested), max_pages)


class DecideStopTests(unittest.TestCase):
    def test_priority(self) -> None:
        paging = PagingSettings(page_size=50, max_pages=2)
        hinted = {"content": {"totalSize": 120}}

        self.assertIsNone(decide_stop(hinted, 0, 10, 10, paging))
        self.assertEqual(decide_stop(hinted, 0, 10, 120, paging), StopReason.TOTAL_REACHED)
        self.assertEqual(decide_stop({}, 0, 10, 10, paging), StopReason.SHORT_PAGE)
        self.assertEqual(decide_stop({}, 1, 50, 100, paging), StopReason.MAX_PAGES)
        self.assertIsNone(decide_stop({}, 0, 50, 50, paging))


if __name__ == "__main__":
    unittest.main()
