"""
Pearson grade conversion tool adapter.
Drives the step-by-step selector (session, subject, unit) and reads the
"All scores" table. Uses SeleniumBase to run the browser.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from seleniumbase import Driver

from grade_scraper.adapter import (
    AdapterLaunchError,
    ExtractionError,
    Level,
    NotFoundError,
    PageAdapter,
)

logger = logging.getLogger(__name__)

# Step container holding the options of each level
STEP_SELECTORS: Dict[Level, str] = {
    Level.SESSION: "#gcstep2",
    Level.SUBJECT: "#gcstep3",
    Level.UNIT: "#gcstep4",
}
TABS_SELECTOR = "#gcstep5"
COOKIE_BANNER_SELECTOR = "#onetrust-reject-all-handler"
ALL_SCORES_LABELS = ("all scores", "all")

_CLICK_OPTION_JS = """
var links = Array.from(document.querySelectorAll(arguments[0]));
for (var i = 0; i < links.length; i++) {
    if (links[i].textContent.trim() === arguments[1]) { links[i].click(); return true; }
}
return false;
"""

_CLICK_ALL_SCORES_JS = """
var labels = arguments[0];
var links = Array.from(document.querySelectorAll('#gcstep5 a'));
for (var i = 0; i < links.length; i++) {
    if (labels.indexOf(links[i].textContent.trim().toLowerCase()) !== -1) {
        links[i].click();
        return true;
    }
}
var tabs = document.querySelectorAll('#gcstep5 ul.nav.nav-tabs li a');
if (tabs.length > 0) { tabs[tabs.length - 1].click(); return true; }
return false;
"""

_CLICK_QUALIFICATION_JS = """
var links = Array.from(document.querySelectorAll('a, button'));
for (var i = 0; i < links.length; i++) {
    if (links[i].textContent.indexOf(arguments[0]) !== -1) { links[i].click(); return true; }
}
return false;
"""


def parse_option_labels(html: str, level: Level) -> List[str]:
    """
    Read the option labels of one step from page HTML.

    Falls back to any step option list when the step container is absent.
    """
    soup = BeautifulSoup(html, 'html.parser')
    links = soup.select(f"{STEP_SELECTORS[level]} .step-option-list a")
    if not links and not soup.select(STEP_SELECTORS[level]):
        links = soup.select(".step-option-list a")
    labels = []
    for link in links:
        text = link.get_text(strip=True)
        if text:
            labels.append(text)
    return labels


def parse_grade_rows(html: str) -> List[Tuple[int, int, str]]:
    """
    Read (raw, ums, grade) rows from the div-based score table.

    Rows whose first two columns are not integers are skipped.

    Raises:
        ExtractionError: If the page holds no grade rows at all
    """
    soup = BeautifulSoup(html, 'html.parser')
    rows = soup.select(".gradeRow")
    if not rows:
        raise ExtractionError("No grade rows found")

    extracted = []
    for row in rows:
        columns = row.select(".gradeColumn")
        if len(columns) < 3:
            continue
        try:
            raw = int(columns[0].get_text(strip=True))
            ums = int(columns[1].get_text(strip=True))
        except ValueError:
            continue
        extracted.append((raw, ums, columns[2].get_text(strip=True)))
    return extracted


class PearsonScraper(PageAdapter):
    """Adapter for the Pearson grade conversion tool."""

    def __init__(
        self,
        base_url: str,
        qualification_type: str,
        headless: bool = True,
        timeout: float = 30.0,
        settle_delay: float = 1.0,
    ):
        self.base_url = base_url
        self.qualification_type = qualification_type
        self.headless = headless
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.driver = None

    def open(self):
        """Start the browser, dismiss the cookie banner and open the tool."""
        if self.driver is not None:
            return
        logger.info("Starting browser (headless=%s)...", self.headless)
        try:
            self.driver = Driver(uc=True, headless=self.headless)
            self.driver.get(self.base_url)
        except Exception as e:
            self.close()
            raise AdapterLaunchError(f"Could not open {self.base_url}: {e}") from e
        time.sleep(self.settle_delay * 3)

        self._dismiss_cookie_banner()

        if not self.driver.is_element_present(STEP_SELECTORS[Level.SESSION]):
            logger.info("Selecting qualification %s...", self.qualification_type)
            self.driver.execute_script(_CLICK_QUALIFICATION_JS, self.qualification_type)
            time.sleep(self.settle_delay * 3)

        if not self._wait_for(STEP_SELECTORS[Level.SESSION]):
            self.close()
            raise AdapterLaunchError("Session list did not load")

    def close(self):
        """Quit the browser."""
        if self.driver is not None:
            try:
                self.driver.quit()
            except Exception as e:
                logger.debug("Error while closing browser: %s", e)
            self.driver = None

    def _dismiss_cookie_banner(self):
        try:
            if self.driver.is_element_present(COOKIE_BANNER_SELECTOR):
                logger.info("Dismissing cookie banner...")
                self.driver.click(COOKIE_BANNER_SELECTOR)
                time.sleep(self.settle_delay)
        except Exception as e:
            logger.debug("Cookie banner not dismissed: %s", e)

    def _wait_for(self, selector: str, timeout: Optional[float] = None) -> bool:
        """Poll until an element is present; returns False on timeout."""
        deadline = time.monotonic() + (timeout if timeout is not None else self.timeout)
        while True:
            if self.driver.is_element_present(selector):
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.5)

    def _require_driver(self):
        if self.driver is None:
            raise AdapterLaunchError("Browser is not open")
        return self.driver

    def list_options(self, level: Level) -> List[str]:
        driver = self._require_driver()
        return parse_option_labels(driver.page_source, level)

    def select(self, level: Level, label: str):
        driver = self._require_driver()
        time.sleep(self.settle_delay)

        selector = f"{STEP_SELECTORS[level]} .step-option-list a"
        if not driver.execute_script(_CLICK_OPTION_JS, selector, label):
            raise NotFoundError(level, label)

        next_step = {
            Level.SESSION: STEP_SELECTORS[Level.SUBJECT],
            Level.SUBJECT: STEP_SELECTORS[Level.UNIT],
            Level.UNIT: TABS_SELECTOR,
        }[level]
        # A unit without tabs is reported by select_all_scores()
        if not self._wait_for(next_step) and level is not Level.UNIT:
            raise NotFoundError(level, label)
        time.sleep(self.settle_delay)

    def select_all_scores(self):
        driver = self._require_driver()
        if not driver.is_element_present(TABS_SELECTOR):
            raise ExtractionError("No tabs section found")

        time.sleep(self.settle_delay)
        if not driver.execute_script(_CLICK_ALL_SCORES_JS, list(ALL_SCORES_LABELS)):
            logger.warning("Could not find the All Scores tab, reading the current view")
        time.sleep(self.settle_delay * 3)

    def extract_score_table(self) -> List[Tuple[int, int, str]]:
        driver = self._require_driver()
        rows = parse_grade_rows(driver.page_source)
        logger.info("Extracted %d grade rows", len(rows))
        return rows
