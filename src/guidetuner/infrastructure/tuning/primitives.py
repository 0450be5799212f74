"""Page primitives shared by every channel strategy.

Strategies import from here rather than from each other, so no strategy
module depends on another strategy or on the dispatcher.
"""

from __future__ import annotations

import asyncio
import unicodedata
from collections.abc import Iterable
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guidetuner.domain.entities.tuning import ClickTarget
from guidetuner.domain.tuning.exceptions import (
    EvaluateTimeoutError,
    PageClosedError,
    TuningError,
)

log = structlog.get_logger(__name__)

# Channel names logged when a search misses.
_MAX_LOGGED_CHANNELS = 60

_CLICK_ELEMENT_JS = "(el) => el.click()"

_DOUBLE_FRAME_JS = """() => new Promise((resolve) => {
    requestAnimationFrame(() => requestAnimationFrame(() => resolve(true)));
})"""

_CENTER_OF_SELECTOR_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    el.scrollIntoView({ block: "center", inline: "center" });
    const rect = el.getBoundingClientRect();
    if (!rect.width || !rect.height) return null;
    return { x: rect.left + rect.width / 2, y: rect.top + rect.height / 2 };
}"""


# ------------------------------------------------------------------
# Names
# ------------------------------------------------------------------


def normalize_channel_name(name: str) -> str:
    """Trim, collapse internal whitespace (NBSP included) and lowercase.

    ``"WLS  "`` and ``"wls"`` normalize to the same value, and the
    function is idempotent.
    """
    return " ".join(name.split()).lower()


def collation_key(name: str) -> tuple[str, str]:
    """Sort key approximating browser ``localeCompare`` ordering.

    Accents are compared as their base letter and case is ignored at
    the primary level; the raw string breaks ties.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), name


def locale_compare(a: str, b: str) -> int:
    """Return -1, 0 or 1 like ``String.prototype.localeCompare``."""
    ka, kb = collation_key(a), collation_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


# ------------------------------------------------------------------
# Page access
# ------------------------------------------------------------------


def ensure_open(page: Page, action: str) -> None:
    if page.is_closed():
        raise PageClosedError(f"Page was closed before {action}.")


async def settle(ms: int) -> None:
    if ms > 0:
        await asyncio.sleep(ms / 1000)


async def evaluate_with_timeout(
    page: Page,
    script: str,
    arg: Any = None,
    *,
    timeout_ms: int,
    action: str = "reading the page",
) -> Any:
    """Run ``page.evaluate`` bounded by *timeout_ms*.

    A closed page, a destroyed execution context (navigation) or a hung
    evaluation raise ``TuningError`` subclasses instead of hanging.
    """
    ensure_open(page, action)
    try:
        return await asyncio.wait_for(page.evaluate(script, arg), timeout_ms / 1000)
    except asyncio.TimeoutError as exc:
        raise EvaluateTimeoutError(
            f"Page evaluation timed out after {timeout_ms}ms while {action}."
        ) from exc
    except PlaywrightError as exc:
        if page.is_closed():
            raise PageClosedError(f"Page was closed while {action}.") from exc
        if "Execution context was destroyed" in str(exc):
            raise PageClosedError(f"Page navigated away while {action}.") from exc
        raise TuningError(f"Page evaluation failed while {action}: {exc}") from exc


async def wait_for_visible(page: Page, selector: str, *, timeout_ms: int) -> bool:
    """Wait for *selector* to be visible. Timeouts return ``False``."""
    ensure_open(page, f"waiting for {selector}")
    try:
        await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False
    except PlaywrightError as exc:
        if page.is_closed():
            raise PageClosedError(
                f"Page was closed while waiting for {selector}."
            ) from exc
        log.debug("wait_for_visible_error", selector=selector, error=str(exc))
        return False


async def wait_for_hidden(page: Page, selector: str, *, timeout_ms: int) -> bool:
    ensure_open(page, f"waiting for {selector} to disappear")
    try:
        await page.wait_for_selector(selector, state="hidden", timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False
    except PlaywrightError as exc:
        if page.is_closed():
            raise PageClosedError(
                f"Page was closed while waiting for {selector} to disappear."
            ) from exc
        return False


async def click_element(page: Page, selector: str) -> bool:
    """Fire a DOM ``click()`` on the first match of *selector*."""
    ensure_open(page, f"clicking {selector}")
    try:
        await page.eval_on_selector(selector, _CLICK_ELEMENT_JS)
        return True
    except PlaywrightError as exc:
        if page.is_closed():
            raise PageClosedError(f"Page was closed while clicking {selector}.") from exc
        log.debug("click_element_failed", selector=selector, error=str(exc))
        return False


async def navigate(page: Page, url: str, *, timeout_ms: int) -> str | None:
    """Navigate to *url*. Returns an error description, or ``None`` on success."""
    ensure_open(page, f"navigating to {url}")
    try:
        resp = await page.goto(url, wait_until="load", timeout=timeout_ms)
    except PlaywrightError as exc:
        if page.is_closed():
            raise PageClosedError(f"Page was closed while navigating to {url}.") from exc
        return str(exc).splitlines()[0] if str(exc) else type(exc).__name__
    if resp is not None and resp.status >= 400:
        return f"HTTP {resp.status}"
    return None


# ------------------------------------------------------------------
# Clicking
# ------------------------------------------------------------------


async def scroll_and_click(
    page: Page, target: ClickTarget, *, settle_ms: int = 200
) -> bool:
    """Click *target* after a settle delay.

    The caller scrolls the element into view first.  ``mouse.click``
    sends the full move/down/up sequence that delegated handlers need.
    """
    await settle(settle_ms)
    ensure_open(page, "clicking the channel")
    await page.mouse.click(target.x, target.y)
    return True


async def locate_center(
    page: Page, selector: str, *, timeout_ms: int
) -> ClickTarget | None:
    point = await evaluate_with_timeout(
        page,
        _CENTER_OF_SELECTOR_JS,
        selector,
        timeout_ms=timeout_ms,
        action=f"locating {selector}",
    )
    if not point:
        return None
    return ClickTarget(x=point["x"], y=point["y"])


async def wait_for_play_button(
    page: Page,
    selector: str,
    *,
    timeout_ms: int,
    settle_ms: int,
    evaluate_timeout_ms: int,
) -> bool:
    """Wait for a play control, let handlers attach, then click it.

    Returns ``False`` when the control never became visible.
    """
    if not await wait_for_visible(page, selector, timeout_ms=timeout_ms):
        return False

    # Two frames: the element can be painted before its handlers are wired.
    await evaluate_with_timeout(
        page,
        _DOUBLE_FRAME_JS,
        timeout_ms=evaluate_timeout_ms,
        action="waiting for the play button to render",
    )

    target = await locate_center(page, selector, timeout_ms=evaluate_timeout_ms)
    if target is None:
        return False
    return await scroll_and_click(page, target, settle_ms=settle_ms)


# ------------------------------------------------------------------
# Diagnostics
# ------------------------------------------------------------------


def log_available_channels(
    provider: str, channel: str, names: Iterable[str]
) -> None:
    """Log what the guide did show when *channel* could not be found."""
    unique = sorted(set(names), key=collation_key)
    log.warning(
        "channel_not_in_guide",
        provider=provider,
        channel=channel,
        available_count=len(unique),
        available=unique[:_MAX_LOGGED_CHANNELS],
        truncated=len(unique) > _MAX_LOGGED_CHANNELS,
    )
