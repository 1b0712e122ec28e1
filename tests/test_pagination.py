"""
Unit tests for Link header pagination.
"""

from urllib.parse import parse_qsl, urlsplit

import pytest

from canvas_mcp.canvas.errors import CanvasAPIError, CanvasTimeoutError, InvalidResponseError
from canvas_mcp.canvas.pagination import LinkPaginator, build_url, next_link, parse_link_header

from conftest import FakeFetcher, make_response

COURSES_URL = "https://canvas.test/api/v1/courses"
PATH = "/api/v1/courses"


def _link(url: str, rel: str) -> str:
    return f'<{url}>; rel="{rel}"'


class TestParseLinkHeader:
    """Tests for Link header parsing."""

    def test_all_relations(self):
        header = ", ".join([
            _link(f"{COURSES_URL}?page=2", "next"),
            _link(f"{COURSES_URL}?page=1", "first"),
            _link(f"{COURSES_URL}?page=5", "last"),
        ])
        links = parse_link_header(header)
        assert links == {
            "next": f"{COURSES_URL}?page=2",
            "first": f"{COURSES_URL}?page=1",
            "last": f"{COURSES_URL}?page=5",
        }

    def test_next_only_extracted(self):
        header = f'{_link("https://a/1", "prev")},{_link("https://a/3", "next")}'
        assert next_link(header) == "https://a/3"

    @pytest.mark.parametrize("header", [None, "", _link("https://a/1", "last"), "garbage"])
    def test_no_next(self, header):
        assert next_link(header) is None


class TestBuildUrl:
    """Tests for first-page URL construction."""

    def test_per_page_appended_after_caller_params(self):
        url = build_url(COURSES_URL, {"enrollment_state": "active", "include[]": "enrollment_state"})
        query = parse_qsl(urlsplit(url).query)
        assert query == [
            ("enrollment_state", "active"),
            ("include[]", "enrollment_state"),
            ("per_page", "100"),
        ]

    def test_without_params(self):
        assert build_url(COURSES_URL) == f"{COURSES_URL}?per_page=100"


class TestLinkPaginator:
    """Tests for LinkPaginator.fetch_all_pages."""

    def test_concatenates_pages_in_order(self):
        fetcher = FakeFetcher({PATH: [
            make_response([{"id": 1}, {"id": 2}], link=_link(f"{COURSES_URL}?page=2", "next")),
            make_response([{"id": 3}], link=_link(f"{COURSES_URL}?page=3", "next")),
            make_response([{"id": 4}], link=_link(f"{COURSES_URL}?page=1", "first")),
        ]})

        items = LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)

        assert [i["id"] for i in items] == [1, 2, 3, 4]
        assert len(fetcher.calls) == 3
        assert fetcher.calls[1][0] == f"{COURSES_URL}?page=2"
        assert fetcher.calls[2][0] == f"{COURSES_URL}?page=3"

    def test_stops_without_link_header(self):
        fetcher = FakeFetcher({PATH: [make_response([{"id": 1}])]})

        items = LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)

        assert items == [{"id": 1}]
        assert len(fetcher.calls) == 1

    def test_first_request_carries_per_page(self):
        fetcher = FakeFetcher({PATH: [make_response([])]})

        LinkPaginator(fetcher).fetch_all_pages(COURSES_URL, {"include[]": "submission"})

        url, _ = fetcher.calls[0]
        assert url.endswith("per_page=100")
        assert "include%5B%5D=submission" in url

    def test_non_2xx_discards_partial_results(self):
        fetcher = FakeFetcher({PATH: [
            make_response([{"id": 1}], link=_link(f"{COURSES_URL}?page=2", "next")),
            make_response({"errors": []}, status=500, reason="Internal Server Error"),
        ]})

        with pytest.raises(CanvasAPIError) as exc_info:
            LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "canvas_api_error"
        assert "500" in str(exc_info.value)

    def test_unparseable_body(self):
        fetcher = FakeFetcher({PATH: [make_response(raw_body=b"<html>oops</html>")]})

        with pytest.raises(InvalidResponseError) as exc_info:
            LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)

        assert exc_info.value.code == "invalid_response"

    def test_object_body_is_invalid(self):
        fetcher = FakeFetcher({PATH: [make_response({"id": 1})]})

        with pytest.raises(InvalidResponseError):
            LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)

    def test_timeout_propagates(self):
        fetcher = FakeFetcher({PATH: [
            make_response([{"id": 1}], link=_link(f"{COURSES_URL}?page=2", "next")),
            CanvasTimeoutError(15000),
        ]})

        with pytest.raises(CanvasTimeoutError):
            LinkPaginator(fetcher).fetch_all_pages(COURSES_URL)
