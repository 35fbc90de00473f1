"""
Configuration settings for the nomenclature harvester.
"""

# Nomenclature tree endpoint. Every request carries ?country=<CODE>&lang=EN
# and, for child expansion, &parent=<node id>.
API_ENDPOINT = "https://trade.ec.europa.eu/access-to-markets/api/v2/nomenclature/products"

# Response language requested from the API
LANG = "EN"

# Country used when none has been selected yet
DEFAULT_COUNTRY_CODE = "FR"

# Host page carrying the <select id="destination"> country list
COUNTRY_PAGE_URL = "https://trade.ec.europa.eu/access-to-markets/en/home"

# Politeness delay after every successful child fetch, in milliseconds.
# A uniform random integer in [MIN_DELAY_MS, MAX_DELAY_MS] is used.
MIN_DELAY_MS = 2000
MAX_DELAY_MS = 5000

# Minimum interval between progress status pushes
PROGRESS_THROTTLE_MS = 750

# Request timeout in seconds
REQUEST_TIMEOUT = 30

# Browser fingerprint used by curl_cffi
IMPERSONATE = "chrome120"

# Directory receiving one JSON file per completed section
OUTPUT_DIR = "output"

# Persisted crawl state blob
STATE_FILE = "output/harvest_state.json"
