"""Reusable UI flows that create or select entities in the application.

Each flow that causes the application to persist something takes the test's
`CleanupTracker` and registers the natural key right after submitting, before
any confirmation is read, so a failing assertion still leaves a cleanup
obligation behind.
"""
from __future__ import annotations

from dataclasses import dataclass

from portal_e2e.browser import Browser
from portal_e2e.cleanup import CleanupTracker
from portal_e2e.config import settings
from portal_e2e.logger import log
from portal_e2e.test_data import OrganizationData, UserData

SIGN_IN_LINK = 'a:has-text("Sign In")'
SIGN_UP_TAB = 'role=tab[name="Sign Up"]'
CARD_TITLE = '[data-slot="card-title"]'
ORGANIZATION_TABLE_ROWS = 'table[data-slot="table"] tbody tr'


@dataclass
class SubmissionOutcome:
    """Confirmation signals read back after a form submission."""

    url: str
    toast: str | None = None


async def open_sign_in(browser: Browser) -> None:
    await browser.goto("/")
    await browser.click(SIGN_IN_LINK)
    await browser.wait_for_text(CARD_TITLE, "Sign In")


async def sign_in(browser: Browser, email: str, password: str, remember_me: bool = True) -> str:
    """Sign in from the landing page; returns the URL of the dashboard."""
    log.step(1, "Fill in sign in credentials")
    await open_sign_in(browser)
    await browser.fill("#email", email)
    await browser.fill("#password", password)
    if remember_me:
        await browser.check("#rememberMe")

    log.step(2, "Submit sign in form")
    await browser.click('role=button[name="Login"]')
    return await wait_for_dashboard(browser)


async def wait_for_dashboard(browser: Browser) -> str:
    url = await browser.wait_for_url("**/dashboard", timeout=settings.timeouts.long)
    log.success("User authenticated and on dashboard")
    return url


async def sign_up(browser: Browser, user: UserData, cleanup: CleanupTracker | None = None) -> SubmissionOutcome:
    """Register a new account through the sign-up tab."""
    await open_sign_in(browser)
    await browser.click(SIGN_UP_TAB)

    log.step(1, "Fill in sign up form")
    log.info(f"Registering user: {user.email}")
    await browser.fill("#first-name", user.first_name)
    await browser.fill("#last-name", user.last_name)
    await browser.fill("#email", user.email)
    await browser.fill("#password", user.password)
    await browser.fill("#password_confirmation", user.password)

    log.step(2, "Submit sign up form")
    await browser.click('role=button[name="Create an account"]')
    if cleanup is not None:
        cleanup.register_user(user.email)

    # Successful registration lands back on the sign-in card.
    await browser.wait_for_text(CARD_TITLE, "Sign In", timeout=settings.timeouts.medium)
    return SubmissionOutcome(url=browser.url)


async def open_organizations(browser: Browser) -> None:
    log.info("Navigating to Organization page")
    await browser.goto("/organization")
    await browser.wait_for_url("**/organization")


async def create_organization(
    browser: Browser,
    organization: OrganizationData,
    cleanup: CleanupTracker | None = None,
) -> SubmissionOutcome:
    """Submit the create-organization form; toast or redirect confirms it."""
    await browser.goto("/organization/create")
    await browser.wait_for_url("**/organization/create")

    log.info(f"Creating organization: {organization.name} ({organization.slug})")
    await browser.fill("input#name", organization.name)
    await browser.fill("input#slug", organization.slug)
    await browser.click('button[type="submit"]:has-text("Submit")')
    if cleanup is not None:
        cleanup.register_organization(organization.slug)

    toast = await browser.toast_text(timeout=settings.timeouts.long)
    if toast is None:
        await browser.wait_for_url("**/organization", timeout=settings.timeouts.medium)
    return SubmissionOutcome(url=browser.url, toast=toast)


def _organization_row(slug: str) -> str:
    return f'{ORGANIZATION_TABLE_ROWS}:has(td:nth-child(4):text-is("{slug}"))'


async def activate_organization(browser: Browser, slug: str) -> SubmissionOutcome:
    """Make `slug` the active organization of the session via its table row."""
    await open_organizations(browser)
    button = f'{_organization_row(slug)} td:first-child button:has-text("Use Organization")'
    if not await browser.is_visible(button, timeout=settings.timeouts.medium):
        raise AssertionError(f'"Use Organization" button not found for slug: {slug}')

    log.info(f'Clicking "Use Organization" for slug: {slug}')
    await browser.click(button)
    toast = await browser.toast_text(timeout=settings.timeouts.medium)
    return SubmissionOutcome(url=browser.url, toast=toast)
