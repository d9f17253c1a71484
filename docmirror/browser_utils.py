import logging

from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from docmirror.config import BROWSER_ARGUMENTS, USER_AGENT, SiteSelectors
from docmirror.content_processor import clean_html, extract_links_from_html
from docmirror.errors import CrawlStartupError, TransientFetchError
from docmirror.models import FetchedPage

logger = logging.getLogger(__name__)


def create_browser(headless=True, page_timeout=20):
    """
    Create and return a new Chrome browser instance.

    Uses webdriver_manager to automatically download and manage the appropriate
    ChromeDriver version for the installed Chrome browser. Images are not
    loaded since only the page structure and text are needed.

    Args:
        headless (bool): Run without a visible window.
        page_timeout (float): Page load timeout in seconds.

    Returns:
        webdriver.Chrome: A configured Chrome WebDriver instance.
    """
    options = webdriver.ChromeOptions()
    if headless:
        options.add_argument("--headless=new")
    for argument in BROWSER_ARGUMENTS:
        options.add_argument(argument)
    options.add_argument(f"--user-agent={USER_AGENT}")
    options.add_experimental_option("prefs", {"profile.managed_default_content_settings.images": 2})
    driver = webdriver.Chrome(service=Service(ChromeDriverManager().install()), options=options)
    driver.set_page_load_timeout(page_timeout)
    return driver


def dismiss_cookie_popup(driver):
    """
    Attempt to dismiss cookie consent popups on the page.

    Looks for a reject button and clicks it if found.
    """
    try:
        reject_button = WebDriverWait(driver, 1).until(
            EC.element_to_be_clickable(
                (By.XPATH, "//button[normalize-space()='Do Not Accept' or normalize-space()='Reject All']")
            )
        )
        reject_button.click()
    except TimeoutException:
        # No cookie popup on most pages
        pass


def wait_for_element(driver, css_selector, timeout=10):
    """
    Wait for an element to be present on the page.

    Args:
        driver (webdriver.Chrome): The WebDriver instance.
        css_selector (str): CSS selector for the element to wait for.
        timeout (float): Maximum time to wait in seconds.

    Returns:
        WebElement or None: The element if found, None if timeout occurs.
    """
    try:
        return WebDriverWait(driver, timeout).until(
            EC.presence_of_element_located((By.CSS_SELECTOR, css_selector))
        )
    except TimeoutException:
        logger.debug(f"Timeout waiting for element: {css_selector}")
        return None


def is_404_page(soup):
    """Detect common "not found" indicators in the title or first h1."""
    title_404 = soup.title is not None and "404" in soup.title.get_text()
    h1 = soup.find("h1")
    h1_404 = h1 is not None and "not found" in h1.get_text().lower()
    return title_404 or h1_404


def parse_page(html, url, selectors: SiteSelectors):
    """
    Read title, structural markers, body and links from rendered HTML.

    Args:
        html (str): Full page source.
        url (str): The page URL, used to resolve relative links.
        selectors (SiteSelectors): Where to look on the page.

    Returns:
        FetchedPage: The extracted page. A 404 page has an empty body.
    """
    soup = BeautifulSoup(html, "html.parser")
    title_element = soup.select_one(selectors.title)
    title = title_element.get_text().strip() if title_element else ""

    if is_404_page(soup):
        logger.warning(f"Skipping 404 page: {url}")
        return FetchedPage(url=url, title=title)

    content = soup.select_one(selectors.content)
    body = content.decode_contents() if content else ""
    return FetchedPage(
        url=url,
        title=title,
        has_directory_marker=soup.select_one(selectors.directory_marker) is not None,
        has_content_marker=soup.select_one(selectors.document_marker) is not None,
        raw_body=body,
        links=tuple(extract_links_from_html(clean_html(body, url), url)) if body else (),
    )


class SeleniumRenderer:
    """
    Render pages in a dedicated Chrome session.

    Each crawl worker owns one renderer, so no page state is shared
    between concurrent fetches.
    """

    def __init__(self, selectors=None, headless=True, page_timeout=20, driver_factory=create_browser):
        self.selectors = selectors or SiteSelectors()
        try:
            self.driver = driver_factory(headless=headless, page_timeout=page_timeout)
        except WebDriverException as e:
            raise CrawlStartupError(f"Cannot start browser: {e}") from e

    def fetch(self, url):
        """
        Load a URL and extract the page.

        Args:
            url (str): The URL to load.

        Returns:
            FetchedPage: The rendered page.

        Raises:
            TransientFetchError: On timeout, browser failure, or when neither
                the content area nor any document link appears.
        """
        logger.info(f"🌐 Fetching {url}")
        try:
            self.driver.get(url)
            dismiss_cookie_popup(self.driver)
            if not wait_for_element(self.driver, self.selectors.content, timeout=3):
                if not wait_for_element(self.driver, self.selectors.document_links, timeout=2):
                    raise TransientFetchError(f"No content or document links rendered on {url}")
            html = self.driver.page_source
            final_url = self.driver.current_url or url
        except TimeoutException as e:
            raise TransientFetchError(f"Timeout loading {url}: {e.msg}") from e
        except WebDriverException as e:
            raise TransientFetchError(f"Browser error loading {url}: {e.msg}") from e
        return parse_page(html, final_url, self.selectors)

    def close(self):
        if self.driver is None:
            return
        try:
            self.driver.quit()
        except WebDriverException as e:
            logger.warning(f"Error closing browser: {e.msg}")
        finally:
            self.driver = None
