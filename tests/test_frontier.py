"""
Tests for URL normalization and the crawl frontier.

Covers:
  1. Canonical normalisation (fragments, default ports, trailing slashes, tracking params)
  2. Origin admission (scheme, host and port must all match the seed)
  3. Deduplication and FIFO order
  4. Page budget enforcement
"""

import pytest

from sitegraph.errors import InvalidInputError
from sitegraph.frontier import Frontier
from sitegraph.utils import URLNormalizer, origin_of, refine_title


# ====================================================================
# 1. Normalisation
# ====================================================================

class TestNormalize:
    """URLNormalizer must map equivalent URLs to one canonical string."""

    def setup_method(self):
        self.n = URLNormalizer()

    def test_fragment_stripped(self):
        """#section never distinguishes two pages."""
        assert self.n.normalize("https://example.com/a#section") == "https://example.com/a"

    def test_fragment_only_rejected(self):
        """A bare #anchor is not a navigation target."""
        assert self.n.normalize("#top", "https://example.com/") is None

    def test_default_port_stripped(self):
        """:443 for https and :80 for http are dropped."""
        assert self.n.normalize("https://example.com:443/x") == "https://example.com/x"
        assert self.n.normalize("http://example.com:80/x") == "http://example.com/x"

    def test_non_default_port_kept(self):
        """Explicit non-default ports are part of the origin."""
        assert self.n.normalize("http://example.com:8080/x") == "http://example.com:8080/x"

    def test_trailing_slash_removed_except_root(self):
        """/docs/ and /docs are the same page; the root keeps its slash."""
        assert self.n.normalize("https://example.com/docs/") == "https://example.com/docs"
        assert self.n.normalize("https://example.com") == "https://example.com/"

    def test_host_lowercased(self):
        """Host is case-insensitive, path is not."""
        assert self.n.normalize("https://EXAMPLE.com/Path") == "https://example.com/Path"

    def test_tracking_params_removed_and_sorted(self):
        """utm_* parameters dropped, the rest sorted."""
        url = "https://example.com/p?utm_source=x&b=2&a=1"
        assert self.n.normalize(url) == "https://example.com/p?a=1&b=2"

    def test_relative_resolved(self):
        """Relative hrefs resolve against the base URL."""
        assert self.n.normalize("../c", "https://example.com/a/b/") == "https://example.com/a/c"

    @pytest.mark.parametrize("href", [
        "javascript:void(0)", "mailto:a@example.com", "tel:123", "data:text/plain,hi",
    ])
    def test_non_navigational_schemes_rejected(self, href):
        """javascript:, mailto:, tel: and data: links are ignored."""
        assert self.n.normalize(href, "https://example.com/") is None

    def test_resources_rejected(self):
        """Images and documents are not pages."""
        assert self.n.normalize("https://example.com/logo.png") is None
        assert self.n.normalize("https://example.com/report.pdf") is None

    def test_bad_port_rejected(self):
        """An unparsable port yields None rather than an exception."""
        assert self.n.normalize("https://example.com:notaport/") is None

    @pytest.mark.parametrize("href", ["http://[oops/", "https://[::1/x", "//[bad"])
    def test_malformed_host_rejected_when_joined(self, href):
        """Broken IPv6 literals in page hrefs are dropped, not raised."""
        assert self.n.normalize(href, "https://example.com/docs/") is None


class TestOrigin:
    """origin_of returns scheme://host[:port] or None."""

    def test_origin_of(self):
        """Default port elided, other ports kept."""
        assert origin_of("https://Example.com:443/a?b") == "https://example.com"
        assert origin_of("http://example.com:8080/") == "http://example.com:8080"

    def test_origin_of_invalid(self):
        """Non-http schemes and relative paths have no origin."""
        assert origin_of("ftp://example.com/") is None
        assert origin_of("/relative") is None


class TestRefineTitle:
    """Placeholder titles are replaced with one derived from the URL."""

    def test_real_title_kept(self):
        """Meaningful titles survive with whitespace collapsed."""
        assert refine_title("  Pricing  Plans ", "https://example.com/pricing") == "Pricing Plans"

    def test_placeholder_title_from_slug(self):
        """'Home' on a deep page becomes the title-cased slug."""
        assert refine_title("Home", "https://example.com/our-team") == "Our Team"
        assert refine_title("", "https://example.com/docs/getting_started") == "Getting Started"

    def test_root_is_home(self):
        """The site root is always 'Home'."""
        assert refine_title("index", "https://example.com/") == "Home"


# ====================================================================
# 2-4. Frontier
# ====================================================================

class TestFrontierAdmission:
    """Only new same-origin pages enter the frontier."""

    def test_seed_must_be_absolute_http(self):
        """A seed without an http(s) origin is rejected up front."""
        with pytest.raises(InvalidInputError):
            Frontier("example.com", 10)
        with pytest.raises(InvalidInputError):
            Frontier("ftp://example.com/", 10)

    def test_budget_must_be_positive(self):
        """Zero pages is not a crawl."""
        with pytest.raises(InvalidInputError):
            Frontier("https://example.com/", 0)

    def test_other_origins_rejected(self):
        """Scheme, host and port must all match the seed."""
        f = Frontier("https://example.com/", 10)
        assert not f.enqueue("https://other.com/a", 1)
        assert not f.enqueue("http://example.com/a", 1)         # scheme differs
        assert not f.enqueue("https://example.com:8443/a", 1)   # port differs
        assert not f.enqueue("https://sub.example.com/a", 1)
        assert f.enqueue("https://example.com/a", 1)
        assert f.rejected == 4

    def test_duplicates_rejected_after_normalization(self):
        """Variants of one URL are admitted once."""
        f = Frontier("https://example.com/", 10)
        assert f.enqueue("https://example.com/a", 1)
        assert not f.enqueue("https://example.com/a/", 1)
        assert not f.enqueue("https://example.com/a#frag", 1)
        assert not f.enqueue("https://example.com:443/a", 1)
        assert f.discovered() == ["https://example.com/a"]

    def test_fifo_order_and_depth(self):
        """Entries come out in admission order with depth and parent."""
        f = Frontier("https://example.com/", 10)
        f.enqueue("https://example.com/", 0)
        f.enqueue("https://example.com/a", 1, "https://example.com/")
        f.enqueue("https://example.com/b", 1, "https://example.com/")
        entries = [f.dequeue(), f.dequeue(), f.dequeue()]
        assert [e.url for e in entries] == [
            "https://example.com/", "https://example.com/a", "https://example.com/b",
        ]
        assert entries[1].depth == 1
        assert entries[1].parent_url == "https://example.com/"
        assert f.dequeue() is None

    def test_dequeued_urls_stay_visited(self):
        """Dequeuing does not make a URL admissible again."""
        f = Frontier("https://example.com/", 10)
        f.enqueue("https://example.com/a", 1)
        f.dequeue()
        assert not f.enqueue("https://example.com/a", 2)
        assert "https://example.com/a" in f

    def test_malformed_href_rejected(self):
        """A broken href counts as a rejection and does not raise."""
        f = Frontier("https://example.com/", 10)
        assert not f.enqueue("http://[oops/", 1)
        assert f.rejected == 1


class TestFrontierBudget:
    """The visited set is capped at max_pages."""

    def test_visited_never_exceeds_budget(self):
        """Admission stops exactly at the budget."""
        f = Frontier("https://example.com/", 3)
        added = f.enqueue_many([f"https://example.com/p{i}" for i in range(10)], 1)
        assert added == 3
        assert len(f) == 3
        assert f.is_full
        assert not f.enqueue("https://example.com/late", 1)

    def test_discovered_keeps_insertion_order(self):
        """discovered() lists URLs in the order they were admitted."""
        f = Frontier("https://example.com/", 5)
        for path in ("/c", "/a", "/b"):
            f.enqueue("https://example.com" + path, 1)
        assert f.discovered() == [
            "https://example.com/c", "https://example.com/a", "https://example.com/b",
        ]
