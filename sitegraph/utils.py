"""
Utility Functions
URL normalization, origin comparison and small text helpers.
"""

import logging
import re
from urllib.parse import urlparse, urlunparse, urljoin, parse_qsl, urlencode
from typing import Optional

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {'http': 80, 'https': 443}


class URLNormalizer:
    """
    Handles URL normalization to prevent duplicate crawling.
    Removes fragments, default ports, trailing slashes and tracking params.
    """

    # Common tracking parameters to remove
    TRACKING_PARAMS = {
        'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
        'fbclid', 'gclid', 'mc_cid', 'mc_eid',
        '_ga', '_gid', 'dclid', 'zanpid', 'epik'
    }

    # File extensions to skip (non-HTML resources)
    SKIP_EXTENSIONS = {
        '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp', '.ico',
        '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
        '.zip', '.rar', '.tar', '.gz', '.7z',
        '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv', '.webm',
        '.css', '.js', '.json', '.xml', '.rss', '.atom',
        '.woff', '.woff2', '.ttf', '.eot', '.otf'
    }

    def __init__(
        self,
        remove_tracking_params: bool = True,
        skip_resources: bool = True,
    ):
        """
        Initialize the URL normalizer.

        Args:
            remove_tracking_params: Remove common tracking query parameters
            skip_resources: Reject URLs that point at non-page resources
        """
        self.remove_tracking_params = remove_tracking_params
        self.skip_resources = skip_resources

    def normalize(self, url: str, base_url: str = None) -> Optional[str]:
        """
        Normalize a URL for consistent comparison.

        Args:
            url: The URL to normalize
            base_url: Optional base URL for resolving relative URLs

        Returns:
            Normalized URL string or None if invalid
        """
        if not url:
            return None

        url = url.strip()

        # Skip javascript:, mailto:, tel:, data: and fragment-only URLs
        if url.lower().startswith(('javascript:', 'mailto:', 'tel:', 'data:', '#')):
            return None

        try:
            if base_url:
                url = urljoin(base_url, url)
            parsed = urlparse(url)
            port = parsed.port
        except ValueError:
            return None

        scheme = parsed.scheme.lower()
        if scheme not in ('http', 'https'):
            return None

        host = (parsed.hostname or '').lower()
        if not host:
            return None

        netloc = host
        if port is not None and port != _DEFAULT_PORTS[scheme]:
            netloc = f"{host}:{port}"

        path = parsed.path or '/'
        path = re.sub(r'/+', '/', path)

        # Remove trailing slash unless it's the root
        if path != '/' and path.endswith('/'):
            path = path.rstrip('/') or '/'

        if self.skip_resources:
            lower_path = path.lower()
            for ext in self.SKIP_EXTENSIONS:
                if lower_path.endswith(ext):
                    return None

        query = parsed.query
        if query and self.remove_tracking_params:
            params = [
                (k, v) for k, v in parse_qsl(query, keep_blank_values=True)
                if k.lower() not in self.TRACKING_PARAMS
            ]
            query = urlencode(sorted(params))

        return urlunparse((scheme, netloc, path, parsed.params, query, ''))


def origin_of(url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` with the default port elided."""
    try:
        parsed = urlparse((url or '').strip())
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or '').lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def is_valid_url(url: str) -> bool:
    """Check that a URL is absolute http(s) with a host."""
    return origin_of(url) is not None


def clean_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip()


_GENERIC_TITLES = {'', 'home', 'index', 'homepage'}


def refine_title(title: Optional[str], url: str) -> str:
    """
    Replace placeholder titles with one derived from the URL.

    "Home", "index" or an empty title on ``/our-team`` becomes "Our Team";
    on the site root it becomes "Home".
    """
    title = clean_text(title or '')
    if title.lower() not in _GENERIC_TITLES:
        return title

    path = urlparse(url).path.strip('/')
    if not path:
        return 'Home'
    slug = path.split('/')[-1]
    words = re.sub(r'[-_]+', ' ', slug).split()
    if not words:
        return 'Home'
    return ' '.join(w.capitalize() for w in words)


def truncate(text: str, limit: int, suffix: str = '...') -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + suffix
