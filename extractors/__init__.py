"""
Extractors for host-page discovery.

This package contains pure, unit-testable extraction functions
for reading the country list from the nomenclature site's HTML.
"""

from .country_options import (
    extract_country_options,
    selected_country,
    label_for
)

__all__ = [
    'extract_country_options',
    'selected_country',
    'label_for'
]
