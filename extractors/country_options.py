"""
Pure extraction functions for country discovery.

These functions are unit-testable and don't perform I/O. They read the
destination-country <select> from a host page's HTML.
"""

from typing import Dict, List, Optional

from bs4 import BeautifulSoup

DESTINATION_SELECT_CSS = "select#destination"


def extract_country_options(html: str,
                            select_css: str = DESTINATION_SELECT_CSS) -> List[Dict[str, object]]:
    """
    Extract country options from a <select> element.

    Args:
        html: HTML content
        select_css: CSS selector for the select element

    Returns:
        List of dicts with 'value', 'label' and 'selected'; options with an
        empty value (placeholders) are skipped
    """
    soup = BeautifulSoup(html, 'lxml')
    select = soup.select_one(select_css)
    if select is None:
        return []

    options = []
    for option in select.find_all('option'):
        value = (option.get('value') or '').strip()
        if not value:
            continue
        options.append({
            'value': value,
            'label': option.get_text(strip=True),
            'selected': option.has_attr('selected'),
        })

    return options


def selected_country(options: List[Dict[str, object]]) -> Optional[str]:
    """Return the value of the pre-selected option, if any."""
    for option in options:
        if option.get('selected'):
            return str(option['value'])
    return None


def label_for(options: List[Dict[str, object]], value: str) -> Optional[str]:
    """Return the label of the option with the given value, if any."""
    for option in options:
        if option.get('value') == value and option.get('label'):
            return str(option['label'])
    return None
