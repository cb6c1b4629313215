"""
Page Classifier
===============
Maps a page's URL and title to a ``PageType`` and a display color.

Classification is pure and deterministic:
- rules are checked in a fixed order, first match wins
- URL path segments are tried against every rule before the title is
- anything unmatched is ``GENERIC``
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import urlparse


class PageType(str, Enum):
    HOME = "home"
    ABOUT = "about"
    CONTACT = "contact"
    PRODUCT = "product"
    SERVICE = "service"
    BLOG = "blog"
    NEWS = "news"
    DASHBOARD = "dashboard"
    PRICING = "pricing"
    LOGIN = "login"
    SIGNUP = "signup"
    DOCS = "docs"
    SUPPORT = "support"
    FAQ = "faq"
    CAREERS = "careers"
    LEGAL = "legal"
    GENERIC = "generic"


# Ordered: earlier rules win when several keywords appear
_RULES: List[Tuple[PageType, FrozenSet[str]]] = [
    (PageType.ABOUT, frozenset({"about", "about-us", "aboutus", "team", "company", "who-we-are"})),
    (PageType.CONTACT, frozenset({"contact", "contact-us", "contactus"})),
    (PageType.PRODUCT, frozenset({"product", "products", "shop", "store", "catalog"})),
    (PageType.SERVICE, frozenset({"service", "services", "solutions", "solution"})),
    (PageType.BLOG, frozenset({"blog", "blogs", "article", "articles", "post", "posts"})),
    (PageType.NEWS, frozenset({"news", "press", "newsroom"})),
    (PageType.DASHBOARD, frozenset({"dashboard", "account", "admin", "console"})),
    (PageType.PRICING, frozenset({"pricing", "plans", "prices"})),
    (PageType.LOGIN, frozenset({"login", "signin", "sign-in", "log-in"})),
    (PageType.SIGNUP, frozenset({"signup", "sign-up", "register", "join"})),
    (PageType.DOCS, frozenset({"docs", "documentation", "guide", "guides", "api"})),
    (PageType.SUPPORT, frozenset({"support", "help", "helpdesk"})),
    (PageType.FAQ, frozenset({"faq", "faqs"})),
    (PageType.CAREERS, frozenset({"careers", "career", "jobs"})),
    (PageType.LEGAL, frozenset({"legal", "privacy", "terms", "cookies", "imprint", "gdpr"})),
]

_HOME_PATHS = {"", "index", "index.html", "home"}
_HOME_TITLES = {"home", "homepage", "home page", "index"}

PALETTE: Dict[PageType, str] = {
    PageType.HOME: "#ef4444",
    PageType.ABOUT: "#10b981",
    PageType.CONTACT: "#f59e0b",
    PageType.PRODUCT: "#8b5cf6",
    PageType.SERVICE: "#06b6d4",
    PageType.BLOG: "#f97316",
    PageType.NEWS: "#f97316",
    PageType.DASHBOARD: "#3b82f6",
    PageType.PRICING: "#ec4899",
    PageType.LOGIN: "#64748b",
    PageType.SIGNUP: "#64748b",
    PageType.DOCS: "#6366f1",
    PageType.SUPPORT: "#14b8a6",
    PageType.FAQ: "#14b8a6",
    PageType.CAREERS: "#84cc16",
    PageType.LEGAL: "#94a3b8",
    PageType.GENERIC: "#6b7280",
}


def _path_of(url: str) -> str:
    # Accepts a bare path ("/about") as well as a full URL
    return urlparse(url).path if "://" in url else url.split("?", 1)[0]


def _path_tokens(path: str) -> List[str]:
    tokens: List[str] = []
    for segment in path.lower().strip("/").split("/"):
        if not segment:
            continue
        tokens.append(segment)
        # "our-team" also contributes "our" and "team"
        tokens.extend(t for t in re.split(r"[-_.]+", segment) if t and t != segment)
    return tokens


def _title_tokens(title: str) -> List[str]:
    return re.findall(r"[a-z0-9]+(?:-[a-z0-9]+)*", title.lower())


def _match(tokens: List[str]) -> Optional[PageType]:
    token_set = set(tokens)
    for page_type, keywords in _RULES:
        if token_set & keywords:
            return page_type
    return None


def classify(url: str, title: Optional[str] = None) -> PageType:
    """Return the ``PageType`` for a page; never raises."""
    path = _path_of(url or "").lower().strip("/")
    title_norm = (title or "").strip().lower()

    if path in _HOME_PATHS or title_norm in _HOME_TITLES:
        return PageType.HOME

    return (
        _match(_path_tokens(path))
        or _match(_title_tokens(title_norm))
        or PageType.GENERIC
    )


def color_for(page_type: PageType) -> str:
    return PALETTE[page_type]
