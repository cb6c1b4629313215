"""Tests for page classification and the color palette."""

import pytest

from sitegraph.classifier import PALETTE, PageType, classify, color_for


class TestClassify:
    """classify() maps a URL and title to exactly one PageType."""

    def test_about_page(self):
        """A bare /about path is ABOUT."""
        assert classify("/about", "About Us") is PageType.ABOUT

    def test_root_is_home(self):
        """The root path is HOME whatever the title."""
        assert classify("/", "Home") is PageType.HOME
        assert classify("https://example.com/", "Acme Corp") is PageType.HOME

    def test_home_title_wins_on_any_path(self):
        """A 'Homepage' title marks the page HOME."""
        assert classify("https://example.com/landing", "Homepage") is PageType.HOME

    def test_unmatched_is_generic(self):
        """No keyword hit falls through to GENERIC."""
        assert classify("https://example.com/xyz", "Something else") is PageType.GENERIC

    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/contact-us", PageType.CONTACT),
        ("https://example.com/products/widget", PageType.PRODUCT),
        ("https://example.com/services", PageType.SERVICE),
        ("https://example.com/blog/2024/launch", PageType.BLOG),
        ("https://example.com/newsroom", PageType.NEWS),
        ("https://example.com/dashboard", PageType.DASHBOARD),
        ("https://example.com/pricing", PageType.PRICING),
        ("https://example.com/login", PageType.LOGIN),
        ("https://example.com/sign-up", PageType.SIGNUP),
        ("https://example.com/docs/intro", PageType.DOCS),
        ("https://example.com/help", PageType.SUPPORT),
        ("https://example.com/faq", PageType.FAQ),
        ("https://example.com/careers", PageType.CAREERS),
        ("https://example.com/privacy", PageType.LEGAL),
    ])
    def test_path_keywords(self, url, expected):
        """Each rule matches on its path keywords alone."""
        assert classify(url, "") is expected

    def test_path_checked_before_title(self):
        """Path says blog, title says contact: path wins."""
        assert classify("https://example.com/blog/post-1", "Contact our editors") is PageType.BLOG

    def test_title_used_when_path_is_opaque(self):
        """Title keywords classify pages with meaningless paths."""
        assert classify("https://example.com/p/12345", "Our Pricing") is PageType.PRICING

    def test_rule_order_breaks_ties(self):
        """'about' precedes 'contact' in the rule list."""
        assert classify("https://example.com/about/contact", "") is PageType.ABOUT

    def test_segment_parts_match(self):
        """Hyphenated segments are split into words."""
        assert classify("https://example.com/meet-the-team", "") is PageType.ABOUT

    def test_deterministic(self):
        """Same input, same answer."""
        results = {classify("https://example.com/services/cloud", "Cloud") for _ in range(20)}
        assert results == {PageType.SERVICE}

    def test_missing_title(self):
        """A None title is treated as empty."""
        assert classify("https://example.com/faq", None) is PageType.FAQ


class TestPalette:
    """Node colors for the network view."""

    def test_every_type_has_a_color(self):
        """No PageType is left without a color."""
        assert set(PALETTE) == set(PageType)

    def test_known_colors(self):
        """HOME is red, GENERIC is grey."""
        assert color_for(PageType.HOME) == "#ef4444"
        assert color_for(PageType.GENERIC) == "#6b7280"
