"""Log in to the school portal and read the attendance counters."""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .errors import AuthError, NetworkError, StructureError
from .models import Counters, ScrapeResult

LOGGER = logging.getLogger(__name__)

LOGIN_PATH = "/index.php"
ATTENDANCE_PATH = "/index.php/attendance"

# column order of the summary row in table.list_table
COUNTER_COLUMNS = ("working_days", "present", "leave", "absent")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/118.0.0.0 Safari/537.36"
)


def _parse_count(text: str) -> int:
    cleaned = text.replace(",", "").strip()
    try:
        return max(int(cleaned), 0)
    except ValueError:
        return 0


def _extract_name(soup: BeautifulSoup) -> str:
    profile = soup.find("table", class_="profile")
    if not profile:
        return ""
    first_row = profile.find("tr")
    if not first_row:
        return ""
    cells = first_row.find_all("td")
    if len(cells) < 3:
        return ""
    bold = cells[2].find("b")
    return bold.get_text(strip=True) if bold else cells[2].get_text(strip=True)


def parse_attendance(html: str, day: date) -> ScrapeResult:
    """Parse the attendance page into a ScrapeResult for ``day``.

    The counters sit in the second row of ``table.list_table``. Cells that are
    present but not numeric count as 0; missing cells mean the page changed.
    """
    soup = BeautifulSoup(html, "html.parser")

    table = soup.find("table", class_="list_table")
    if not table:
        raise StructureError("table.list_table not found on attendance page")

    rows = table.find_all("tr")
    if len(rows) < 2:
        raise StructureError("attendance summary row not found")

    cells = rows[1].find_all("td")
    texts = [cell.get_text(strip=True) for cell in cells[: len(COUNTER_COLUMNS)]]
    if len(texts) < len(COUNTER_COLUMNS) or not all(texts):
        raise StructureError(
            f"expected {len(COUNTER_COLUMNS)} counter cells, found {len([t for t in texts if t])}"
        )

    values = dict(zip(COUNTER_COLUMNS, (_parse_count(t) for t in texts)))
    return ScrapeResult(date=day, student_name=_extract_name(soup), counters=Counters(**values))


def _login_payload(html: str, username: str, password: str) -> tuple[str, Dict[str, str]]:
    """Return (form action, fields) for the portal login form."""
    soup = BeautifulSoup(html, "html.parser")
    password_input = soup.find("input", attrs={"type": "password"})
    form = password_input.find_parent("form") if password_input else None
    if form is None:
        raise StructureError("login form not found")

    fields: Dict[str, str] = {}
    user_field: Optional[str] = None
    for tag in form.find_all("input"):
        name = tag.get("name")
        if not name:
            continue
        kind = (tag.get("type") or "text").lower()
        if kind == "password":
            fields[name] = password
        elif kind in ("text", "email") and user_field is None:
            user_field = name
            fields[name] = username
        elif kind in ("hidden", "submit"):
            fields[name] = tag.get("value", "")

    if user_field is None:
        raise StructureError("username field not found in login form")
    return form.get("action") or "", fields


class PortalClient:
    """One logged-in session against the portal.

    ``requests`` failures are translated into the error taxonomy here so the
    orchestrator never sees a transport exception.
    """

    def __init__(self, base_url: str, *, timeout: float = 30, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.Timeout as exc:
            raise NetworkError(f"timed out requesting {url}") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"request to {url} failed: {exc}") from exc
        return response

    def login(self, username: str, password: str) -> None:
        login_url = self.base_url + LOGIN_PATH
        LOGGER.info("Navigating to login page %s", login_url)
        page = self._request("GET", login_url)

        action, fields = _login_payload(page.text, username, password)
        response = self._request("POST", urljoin(login_url, action), data=fields)

        final_url = response.url.lower()
        if "login" in final_url or "error" in final_url:
            raise AuthError(f"still on {response.url} after submitting credentials")
        LOGGER.info("Login successful")

    def fetch(self, day: date) -> ScrapeResult:
        url = self.base_url + ATTENDANCE_PATH
        LOGGER.info("Fetching attendance page %s", url)
        response = self._request("GET", url)
        result = parse_attendance(response.text, day)
        LOGGER.info("Scraped counters for %s: %s", result.student_name or "?", result.counters.to_dict())
        return result

    def close(self) -> None:
        self.session.close()
