"""
Web page crawler for invention context

Fetches a product or project page and reduces it to a bounded amount of
plain text that can be pasted into an AI prompt.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from patentbot.internal.text_utils import MAX_CRAWL_CHARS, html_to_plain_text, truncate_text

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 100

CRAWL_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; PatentBot/1.0; Patent Analysis)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
}


class CrawlError(Exception):
    def __init__(self, message: str, status_code: int = 400, content: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.content = content


def validate_url(url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URL, else raise CrawlError"""
    try:
        parsed = urlparse(url)
    except ValueError:
        raise CrawlError("Invalid URL format")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CrawlError("Invalid URL format")
    return url


async def fetch_page_text(url: str, timeout: float = 10.0, limit: int = MAX_CRAWL_CHARS) -> str:
    """
    Download a page and extract its visible text

    Args:
        url: Absolute http(s) URL
        timeout: Seconds before the request is abandoned
        limit: Characters kept before the truncation marker is appended

    Returns:
        Extracted text, possibly shorter than MIN_CONTENT_CHARS

    Raises:
        CrawlError: 400 for a non-2xx answer, 408 on timeout, 500 on other transport errors
    """
    validate_url(url)
    logger.info(f"Crawling URL: {url}")

    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url, headers=CRAWL_HEADERS)
    except httpx.TimeoutException as e:
        logger.warning(f"Timed out crawling {url}: {e}")
        raise CrawlError("Request timeout - URL took too long to respond", 408)
    except httpx.HTTPError as e:
        logger.error(f"Transport error crawling {url}: {e}")
        raise CrawlError("Internal server error while crawling URL", 500)

    if not response.is_success:
        logger.error(f"Failed to fetch URL: {response.status_code} {response.reason_phrase}")
        raise CrawlError(f"Failed to fetch URL: {response.status_code} {response.reason_phrase}")

    html = response.text
    logger.info(f"Fetched HTML, length: {len(html)}")

    text = truncate_text(html_to_plain_text(html), limit)
    logger.info(f"Extracted text content, length: {len(text)}")
    return text


async def crawl_url(url: str) -> str:
    """fetch_page_text that also rejects pages with almost no text"""
    text = await fetch_page_text(url)
    if len(text) < MIN_CONTENT_CHARS:
        logger.warning("Very little content extracted from URL")
        raise CrawlError("Unable to extract meaningful content from URL", 400, content=text)
    return text
