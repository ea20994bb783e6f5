"""
Cookie consent modal dismissal.

Consent banners block content and screenshots, so the crawler tries to close
them on the first page it loads. dismiss_cookie_modals() walks a ladder of
strategies (known vendor selectors, button text, then the same two inside
shadow roots) and never raises: every failure is folded into a
DismissOutcome with dismissed=False.

DOM inspection happens inside the page through the small JS scripts
below. Each script receives plain JSON arguments and returns a plain JSON
result.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecrawl.constants import (
    DEFAULT_COOKIE_MODAL_TIMEOUT_MS,
    DEFAULT_DISMISS_RETRY_COUNT,
    DEFAULT_DISMISS_RETRY_DELAY_MS,
    DEFAULT_MODAL_MAX_POLL_ATTEMPTS,
    DEFAULT_MODAL_POLL_INTERVAL_MS,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Consent Platform Selectors
# =============================================================================

COOKIE_BUTTON_SELECTORS = [
    # OneTrust
    "#onetrust-accept-btn-handler",
    "#accept-recommended-btn-handler",
    # CookieBot
    "#CybotCookiebotDialogBodyButtonAccept",
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    # Cookie Consent (Osano)
    ".cc-btn.cc-allow",
    ".cc-accept-all",
    # Funding Choices (Google)
    ".fc-cta-consent",
    ".fc-button-label",
    # Quantcast
    '.qc-cmp2-summary-buttons button[mode="primary"]',
    # Termly
    ".t-acceptAllButton",
    # TrustArc
    ".trustarc-agree-btn",
    # Generic patterns
    "#cookie-accept",
    "#accept-cookies",
    "#cookies-accept",
    "#gdpr-cookie-accept",
    "#cookie-consent-accept",
    ".cookie-accept",
    ".accept-cookies",
    ".cookie-consent-accept",
    '[data-testid="cookie-accept"]',
    '[data-cy="cookie-accept"]',
    # Aria-based
    'button[aria-label*="accept" i]',
    'button[aria-label*="cookie" i][aria-label*="accept" i]',
]

# Whole-label matches, case-insensitive
COOKIE_BUTTON_TEXT_PATTERNS = [
    r"^accept$",
    r"^accept all$",
    r"^accept all cookies$",
    r"^accept cookies$",
    r"^allow$",
    r"^allow all$",
    r"^allow all cookies$",
    r"^allow cookies$",
    r"^i agree$",
    r"^agree$",
    r"^i accept$",
    r"^ok$",
    r"^okay$",
    r"^got it$",
    r"^continue$",
    r"^dismiss$",
    r"^yes, i agree$",
    r"^yes, i accept$",
]

MODAL_CONTAINER_SELECTORS = [
    "#onetrust-consent-sdk",
    "#onetrust-banner-sdk",
    "#CybotCookiebotDialog",
    ".cc-window",
    ".qc-cmp2-container",
    ".fc-consent-root",
    '[class*="cookie-banner"]',
    '[class*="cookie-consent"]',
    '[class*="consent-banner"]',
    '[class*="gdpr-banner"]',
    '[id*="cookie-consent"]',
    '[id*="cookie-banner"]',
    '[role="dialog"][aria-label*="cookie" i]',
    '[role="dialog"][aria-label*="consent" i]',
]

_COMPILED_TEXT_PATTERNS = [re.compile(p, re.IGNORECASE) for p in COOKIE_BUTTON_TEXT_PATTERNS]


# =============================================================================
# In-page Scripts
# =============================================================================

# Bump when any script's argument or result shape changes
PROBE_VERSION = 1

IS_VISIBLE_SCRIPT = """
(el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 &&
        style.display !== 'none' &&
        style.visibility !== 'hidden' &&
        style.opacity !== '0';
}
"""

HAS_MODAL_SCRIPT = """
(selectors) => {
    for (const selector of selectors) {
        let el = null;
        try { el = document.querySelector(selector); } catch (e) { continue; }
        if (!el) continue;
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        if (rect.width > 0 && rect.height > 0 &&
            style.display !== 'none' &&
            style.visibility !== 'hidden' &&
            style.opacity !== '0') {
            return true;
        }
    }
    return false;
}
"""

TEXT_CLICK_SCRIPT = """
({ patterns }) => {
    const regexes = patterns.map(p => new RegExp(p, 'i'));
    const clickables = Array.from(document.querySelectorAll(
        'button, [role="button"], a.btn, a.button, input[type="button"], input[type="submit"]'
    ));
    for (const el of clickables) {
        const text = (el.textContent || '').trim();
        const label = text || el.getAttribute('aria-label') || el.value || '';
        if (!regexes.some(r => r.test(label))) continue;
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        if (rect.width > 0 && rect.height > 0 &&
            style.display !== 'none' &&
            style.visibility !== 'hidden' &&
            style.opacity !== '0') {
            el.click();
            return { found: true, text: label };
        }
    }
    return { found: false };
}
"""

SHADOW_CLICK_SCRIPT = """
({ selectors, patterns }) => {
    const regexes = patterns.map(p => new RegExp(p, 'i'));
    const visible = (el) => {
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return rect.width > 0 && rect.height > 0 &&
            style.display !== 'none' && style.visibility !== 'hidden';
    };
    const findShadowRoots = (root) => {
        const shadows = [];
        for (const el of root.querySelectorAll('*')) {
            if (el.shadowRoot) {
                shadows.push(el.shadowRoot);
                shadows.push(...findShadowRoots(el.shadowRoot));
            }
        }
        return shadows;
    };
    for (const shadow of findShadowRoots(document)) {
        for (const selector of selectors) {
            let el = null;
            try { el = shadow.querySelector(selector); } catch (e) { continue; }
            if (el && visible(el)) {
                el.click();
                return { found: true, method: 'shadow-selector', selector };
            }
        }
        for (const btn of shadow.querySelectorAll('button, [role="button"]')) {
            const text = (btn.textContent || '').trim();
            if (regexes.some(r => r.test(text)) && visible(btn)) {
                btn.click();
                return { found: true, method: 'shadow-text', selector: text };
            }
        }
    }
    return { found: false };
}
"""


# =============================================================================
# Results
# =============================================================================

class DismissMethod(Enum):
    """Strategy that closed the modal."""
    SELECTOR = "selector"
    TEXT = "text"
    SHADOW_SELECTOR = "shadow-selector"
    SHADOW_TEXT = "shadow-text"


@dataclass
class DismissOptions:
    """Bounds for one dismissal run."""
    timeout_ms: int = DEFAULT_COOKIE_MODAL_TIMEOUT_MS
    retry_count: int = DEFAULT_DISMISS_RETRY_COUNT
    retry_delay_ms: int = DEFAULT_DISMISS_RETRY_DELAY_MS
    poll_interval_ms: int = DEFAULT_MODAL_POLL_INTERVAL_MS
    max_poll_attempts: int = DEFAULT_MODAL_MAX_POLL_ATTEMPTS


@dataclass
class DismissOutcome:
    """Result of a dismissal run."""
    dismissed: bool = False
    method: Optional[DismissMethod] = None
    selector: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "dismissed": self.dismissed,
            "method": self.method.value if self.method else None,
            "selector": self.selector,
            "error": self.error,
            "script_version": PROBE_VERSION,
        }


def matches_accept_text(text: str) -> bool:
    """Check whether a button label reads like an accept/agree action."""
    label = (text or "").strip()
    return any(p.search(label) for p in _COMPILED_TEXT_PATTERNS)


# =============================================================================
# Modal Detection
# =============================================================================

async def has_cookie_modal(page) -> bool:
    """
    Check if a known consent modal container is currently visible.

    Returns False (never raises) if the page cannot be evaluated.
    """
    try:
        return bool(await page.evaluate(HAS_MODAL_SCRIPT, MODAL_CONTAINER_SELECTORS))
    except Exception as e:
        logger.debug(f"Cookie modal check failed: {e}")
        return False


async def wait_for_modal_to_close(
    page,
    max_attempts: int = DEFAULT_MODAL_MAX_POLL_ATTEMPTS,
    interval_ms: int = DEFAULT_MODAL_POLL_INTERVAL_MS,
) -> bool:
    """
    Poll until no consent modal is visible.

    Returns:
        True if the modal went away within max_attempts polls
    """
    for attempt in range(max_attempts):
        if not await has_cookie_modal(page):
            return True
        if attempt < max_attempts - 1:
            await asyncio.sleep(interval_ms / 1000)
    return False


async def _wait_for_modal_to_appear(page, timeout_ms: int) -> None:
    """Give late-loading banners a chance to attach; absence is fine."""
    try:
        await page.wait_for_selector(
            ", ".join(MODAL_CONTAINER_SELECTORS),
            timeout=timeout_ms,
            state="attached",
        )
    except PlaywrightTimeoutError:
        logger.debug("No cookie modal appeared")


# =============================================================================
# Strategies
# =============================================================================

async def _try_known_selectors(page, options: DismissOptions) -> DismissOutcome:
    for selector in COOKIE_BUTTON_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if button is None:
                continue
            if not await button.evaluate(IS_VISIBLE_SCRIPT):
                continue
            await button.click(timeout=options.timeout_ms)
        except Exception as e:
            logger.debug(f"Selector {selector} not clickable: {e}")
            continue

        if await wait_for_modal_to_close(page, options.max_poll_attempts, options.poll_interval_ms):
            return DismissOutcome(dismissed=True, method=DismissMethod.SELECTOR, selector=selector)
        logger.debug(f"Clicked {selector} but the modal is still visible")

    return DismissOutcome()


async def _try_text_buttons(page, options: DismissOptions) -> DismissOutcome:
    try:
        result = await page.evaluate(TEXT_CLICK_SCRIPT, {"patterns": COOKIE_BUTTON_TEXT_PATTERNS})
    except Exception as e:
        logger.debug(f"Text-based cookie button search failed: {e}")
        return DismissOutcome()

    if not result or not result.get("found"):
        return DismissOutcome()

    if await wait_for_modal_to_close(page, options.max_poll_attempts, options.poll_interval_ms):
        return DismissOutcome(dismissed=True, method=DismissMethod.TEXT, selector=result.get("text"))
    return DismissOutcome()


async def _try_shadow_dom(page, options: DismissOptions) -> DismissOutcome:
    try:
        result = await page.evaluate(
            SHADOW_CLICK_SCRIPT,
            {"selectors": COOKIE_BUTTON_SELECTORS, "patterns": COOKIE_BUTTON_TEXT_PATTERNS},
        )
    except Exception as e:
        logger.debug(f"Shadow DOM cookie button search failed: {e}")
        return DismissOutcome()

    if not result or not result.get("found"):
        return DismissOutcome()

    if await wait_for_modal_to_close(page, options.max_poll_attempts, options.poll_interval_ms):
        return DismissOutcome(
            dismissed=True,
            method=DismissMethod(result.get("method", "shadow-selector")),
            selector=result.get("selector"),
        )
    return DismissOutcome()


STRATEGIES = (_try_known_selectors, _try_text_buttons, _try_shadow_dom)


async def dismiss_cookie_modals(page, options: Optional[DismissOptions] = None) -> DismissOutcome:
    """
    Attempt to dismiss cookie consent modals on a loaded page.

    Should be called after page.goto() completes. Never raises.

    Args:
        page: Playwright Page instance
        options: Timeouts and retry bounds

    Returns:
        DismissOutcome describing which strategy (if any) closed the modal
    """
    options = options or DismissOptions()
    last_error: Optional[str] = None

    for attempt in range(options.retry_count + 1):
        try:
            if attempt == 0:
                await _wait_for_modal_to_appear(page, options.timeout_ms)

            for strategy in STRATEGIES:
                outcome = await strategy(page, options)
                if outcome.dismissed:
                    logger.info(
                        f"Cookie modal dismissed via {outcome.method.value}: {outcome.selector}"
                    )
                    return outcome

            last_error = None
        except Exception as e:
            last_error = str(e)
            logger.debug(f"Cookie dismissal attempt {attempt + 1} failed: {e}")

        if attempt < options.retry_count:
            await asyncio.sleep(options.retry_delay_ms / 1000)

    return DismissOutcome(error=last_error)
