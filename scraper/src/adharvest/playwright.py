"""Playwright page session for the transparency center results grid."""

from __future__ import annotations

import time
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, TimeoutError
from playwright.async_api import Error as PlaywrightError

from .collector import CreativeObservation
from .errors import CollectionTimeout
from .logging import jlog
from .urls import is_creative_image_url

SEARCH_INPUT_SELECTORS = (
    'input[aria-label="Search ads"]',
    'input[aria-label="Search by advertiser or keyword"]',
    'input[type="search"]',
    "input",
)
SUGGESTION_SELECTOR = '[role="listbox"] [role="option"]'
LOAD_MORE_SELECTOR = 'button:has-text("Load more")'
MAX_SNIPPET_CHARS = 600
VIEWPORT = {"width": 1280, "height": 900}

# Returns [{src, alt, snippets}] for every <img> currently in the DOM.
_EXTRACT_JS = """
(maxChars) => {
  const out = [];
  for (const node of Array.from(document.querySelectorAll('img'))) {
    const src = node.getAttribute('src') || node.getAttribute('data-src') || '';
    const alt = node.getAttribute('alt') || '';
    const container =
      node.closest('article') ||
      node.closest('[role="listitem"]') ||
      node.closest('div[data-testid]') ||
      node.parentElement;
    const snippets = [];
    if (container) {
      const textNodes = container.querySelectorAll("h1, h2, h3, h4, h5, h6, p, span, div[role='text'], [data-text]");
      for (const el of Array.from(textNodes)) {
        const content = (el.textContent || '').trim();
        if (content.length > 1 && content.length <= maxChars) {
          snippets.push(content);
        }
      }
    }
    out.push({ src, alt, snippets });
  }
  return out;
}
"""

_READY_JS = """
() => {
  const main = document.querySelector('main');
  return !!main && main.querySelectorAll('img').length > 0;
}
"""


def observations_from_raw(entries: list[dict[str, Any]]) -> list[CreativeObservation]:
    """Convert raw DOM entries into observations, dropping non-creative images."""

    out: list[CreativeObservation] = []
    for entry in entries or []:
        src = (entry.get("src") or "").strip()
        if not is_creative_image_url(src):
            continue
        alt = (entry.get("alt") or "").strip() or None
        snippets = tuple(s for s in (entry.get("snippets") or []) if isinstance(s, str) and s)
        out.append(CreativeObservation(image_url=src, alt_text=alt, text_snippets=snippets))
    return out


class PlaywrightPageSession:
    """:class:`adharvest.collector.PageSession` backed by a live Playwright page."""

    def __init__(self, page: Page, *, action_timeout_ms: int = 10000) -> None:
        self.page = page
        self.action_timeout_ms = action_timeout_ms

    async def open(self, url: str, advertiser: str, *, timeout_ms: int) -> None:
        jlog("info", event="navigate", url=url)
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except TimeoutError as exc:
            raise CollectionTimeout(f"navigation to {url} timed out") from exc
        await self.search_advertiser(advertiser)

    async def search_advertiser(self, advertiser: str) -> None:
        jlog("info", event="advertiser_search", advertiser=advertiser)
        handle = None
        for selector in SEARCH_INPUT_SELECTORS:
            handle = await self.page.query_selector(selector)
            if handle:
                break
        if not handle:
            raise CollectionTimeout("unable to locate the search input on the transparency page")

        await handle.click(click_count=3, timeout=self.action_timeout_ms)
        await handle.fill("")
        await self.page.wait_for_timeout(200)
        await handle.type(advertiser, delay=40)
        await self.page.wait_for_timeout(600)

        suggestions = self.page.locator(SUGGESTION_SELECTOR)
        if await suggestions.count() > 0:
            await suggestions.first.click(timeout=self.action_timeout_ms)
            await self.page.wait_for_timeout(800)
        else:
            await self.page.keyboard.press("Enter")

    async def wait_until_ready(self, timeout_ms: int) -> None:
        # Both waits share one deadline; networkidle may use at most half of it.
        deadline = time.monotonic() + timeout_ms / 1000
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms // 2)
        except TimeoutError:
            jlog("warning", event="networkidle_timeout", timeout_ms=timeout_ms // 2)
        remaining_ms = max(1, int((deadline - time.monotonic()) * 1000))
        try:
            await self.page.wait_for_function(_READY_JS, timeout=remaining_ms)
        except TimeoutError as exc:
            raise CollectionTimeout(f"no creatives rendered within {timeout_ms}ms") from exc

    async def extract(self) -> list[CreativeObservation]:
        raw = await self.page.evaluate(_EXTRACT_JS, MAX_SNIPPET_CHARS)
        return observations_from_raw(raw)

    async def request_more(self) -> None:
        load_more = self.page.locator(LOAD_MORE_SELECTOR)
        if await load_more.count() > 0:
            try:
                await load_more.first.click(timeout=self.action_timeout_ms)
                return
            except TimeoutError:
                jlog("warning", event="load_more_click_timeout")
        await self.page.evaluate("() => window.scrollBy({ top: window.innerHeight * 0.85, behavior: 'smooth' })")


async def cleanup_playwright(context: BrowserContext | None, browser: Browser | None) -> None:
    """Close the browser resources, logging rather than raising on teardown errors."""

    for resource in (context, browser):
        if resource is None:
            continue
        try:
            await resource.close()
        except PlaywrightError as exc:  # pragma: no cover - teardown only
            jlog("warning", event="playwright_close_error", error=str(exc))


CHROMIUM_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--disable-gpu",
]


__all__ = [
    "CHROMIUM_LAUNCH_ARGS",
    "PlaywrightPageSession",
    "VIEWPORT",
    "cleanup_playwright",
    "observations_from_raw",
]
