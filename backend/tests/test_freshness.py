"""
Freshness (conditional GET) tests
"""

import hashlib

from image_proxy.freshness import evaluate, format_http_date, generate_etag


TIMESTAMP = 1_700_000_000  # Tue, 14 Nov 2023 22:13:20 GMT


class TestFreshness:

    def test_etag_is_md5_of_content(self):
        assert generate_etag(b"abc") == hashlib.md5(b"abc").hexdigest()

    def test_etag_stable_across_reads(self):
        assert generate_etag(b"same") == generate_etag(b"same")
        assert generate_etag(b"same") != generate_etag(b"other")

    def test_http_date_format(self):
        assert format_http_date(TIMESTAMP) == "Tue, 14 Nov 2023 22:13:20 GMT"

    def test_no_conditional_headers_is_stale(self):
        state = evaluate(b"abc", TIMESTAMP)
        assert state.fresh is False
        assert state.headers() == {
            "ETag": hashlib.md5(b"abc").hexdigest(),
            "Last-Modified": "Tue, 14 Nov 2023 22:13:20 GMT",
        }

    def test_matching_etag_is_fresh(self):
        etag = generate_etag(b"abc")
        assert evaluate(b"abc", TIMESTAMP, if_none_match=etag).fresh is True

    def test_different_etag_is_stale(self):
        assert evaluate(b"abc", TIMESTAMP, if_none_match="deadbeef").fresh is False

    def test_matching_last_modified_is_fresh(self):
        state = evaluate(b"abc", TIMESTAMP, if_modified_since="Tue, 14 Nov 2023 22:13:20 GMT")
        assert state.fresh is True

    def test_later_date_is_still_stale(self):
        # Exact string comparison, not a date-range check
        state = evaluate(b"abc", TIMESTAMP, if_modified_since="Wed, 15 Nov 2023 00:00:00 GMT")
        assert state.fresh is False
