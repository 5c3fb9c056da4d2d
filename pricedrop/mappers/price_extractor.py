"""Best-effort room price extraction from an arbitrary listing page.

The page structure is unknown and changes without notice, so extraction is an
ordered cascade of strategies. Each strategy is a pure function from the parsed
page to the list of amounts it found; the first strategy that finds anything
wins and the cheapest amount it found is taken as the room rate. That is an
approximation: the cheapest number on the page may be a tax line or a fee.
"""

import logging
import math
import random
import re
from collections.abc import Callable

from bs4 import BeautifulSoup

from pricedrop.schemas.responses import PriceResult

logger = logging.getLogger(__name__)

NO_PRICES_FOUND = "No prices found"

PRICE_CONTAINER_SELECTORS = (
    '[data-testid="price-and-discounted-price"]',
    '[data-testid="price"]',
    ".price-display",
    ".real-price",
    ".hotel-price",
    ".room-price",
    ".price",
    "[class*='Price']",
    "[class*='price']",
)

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
_SYMBOL = r"[€$£]|US\$|R\$"

# Ordered: the first pattern with any valid match wins for a given text.
PRICE_PATTERNS = (
    re.compile(rf"Total price[^\d€$£]{{0,20}}(?:{_SYMBOL})\s*{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"Price[^\d€$£]{{0,20}}(?:{_SYMBOL})\s*{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"(?:{_SYMBOL})\s*{_AMOUNT}"),
    re.compile(rf"{_AMOUNT}\s*(?:{_SYMBOL})"),
    re.compile(rf"{_AMOUNT}\s*(?:per night|/\s*night|a night)", re.IGNORECASE),
    re.compile(rf"(?:per night|/\s*night)[^\d]{{0,10}}{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"{_AMOUNT}\s*(?:EUR|USD|GBP|CHF|AUD|CAD)\b"),
)

_PRICE_TEXT_MARKERS = ("price", "Total price")

_DEMO_PRICE_RANGE = (80.0, 400.0)


def parse_amount(raw: str) -> float | None:
    """Parse '1,234.50' -> 1234.5. Non-positive or non-finite -> None."""
    try:
        value = float(raw.replace(",", "").strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return round(value, 2)


def match_prices(text: str) -> list[float]:
    """Apply the pattern cascade to one text; first pattern with a hit wins."""
    for pattern in PRICE_PATTERNS:
        amounts = [
            amount
            for raw in pattern.findall(text)
            if (amount := parse_amount(raw)) is not None
        ]
        if amounts:
            return amounts
    return []


def scan_price_containers(soup: BeautifulSoup) -> list[float]:
    """Known price-container selectors, matches collected across all containers."""
    seen: set[int] = set()
    amounts: list[float] = []
    for selector in PRICE_CONTAINER_SELECTORS:
        for element in soup.select(selector):
            if id(element) in seen:
                continue
            seen.add(id(element))
            amounts.extend(match_prices(element.get_text(" ", strip=True)))
    return amounts


def scan_page_text(soup: BeautifulSoup) -> list[float]:
    body = soup.body or soup
    return match_prices(body.get_text(" ", strip=True))


def scan_price_elements(soup: BeautifulSoup) -> list[float]:
    """Last resort: any element whose own text mentions a price."""
    amounts: list[float] = []
    for text_node in soup.find_all(string=lambda s: any(m in s for m in _PRICE_TEXT_MARKERS)):
        parent = text_node.parent
        if parent is None or parent.name in ("script", "style"):
            continue
        amounts.extend(match_prices(parent.get_text(" ", strip=True)))
    return amounts


PriceStrategy = Callable[[BeautifulSoup], list[float]]

PRICE_STRATEGIES: tuple[tuple[str, PriceStrategy], ...] = (
    ("price_containers", scan_price_containers),
    ("page_text", scan_page_text),
    ("price_elements", scan_price_elements),
)


def extract_price(
    html: str,
    demo_mode: bool = False,
    rng: random.Random | None = None,
) -> PriceResult:
    """Run the strategy cascade over ``html`` and pick the cheapest amount."""
    soup = BeautifulSoup(html, "html.parser")
    for script in soup(["script", "style", "noscript"]):
        script.decompose()

    for name, strategy in PRICE_STRATEGIES:
        amounts = strategy(soup)
        if amounts:
            price = min(amounts)
            logger.debug("Strategy %s found %d amounts, picked %.2f", name, len(amounts), price)
            return PriceResult(price=price, strategy=name)

    if demo_mode:
        low, high = _DEMO_PRICE_RANGE
        price = round((rng or random).uniform(low, high), 2)
        logger.warning("No prices found, demo mode synthesized %.2f", price)
        return PriceResult(price=price, strategy="demo")

    return PriceResult(error=NO_PRICES_FOUND)
