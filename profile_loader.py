"""
Profile loader for harvest runs.

Loads and validates YAML profile files that pick the country, the sections
to harvest, the politeness window and where output and state are written.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path
import yaml

import harvester_config


@dataclass
class DelayConfig:
    """Politeness delay window applied after each child fetch."""
    min_ms: int = harvester_config.MIN_DELAY_MS
    max_ms: int = harvester_config.MAX_DELAY_MS


@dataclass
class OutputConfig:
    """Configuration for output files."""
    output_dir: str = harvester_config.OUTPUT_DIR
    state_file: str = harvester_config.STATE_FILE


@dataclass
class HarvestProfile:
    """
    Complete profile for a harvest run.

    Every field is optional; missing values fall back to harvester_config.
    """
    country_code: Optional[str] = None
    country_label: Optional[str] = None
    sections: List[str] = field(default_factory=list)
    countries: Optional[List[Dict[str, str]]] = None
    endpoint: Optional[str] = None
    delay: DelayConfig = field(default_factory=DelayConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HarvestProfile':
        """
        Create a HarvestProfile from a dictionary (loaded from YAML).

        Args:
            data: Dictionary from YAML file

        Returns:
            HarvestProfile instance

        Raises:
            ValueError: If fields are invalid
        """
        country_code = data.get('country_code')
        if country_code is not None and (not isinstance(country_code, str) or not country_code.strip()):
            raise ValueError("'country_code' must be a non-empty string")

        sections = data.get('sections') or []
        if not isinstance(sections, list) or not all(isinstance(s, (str, int)) for s in sections):
            raise ValueError("'sections' must be a list of section keys")

        countries = data.get('countries')
        if countries is not None:
            if not isinstance(countries, list):
                raise ValueError("'countries' must be a list")
            for country in countries:
                if not isinstance(country, dict) or not country.get('value'):
                    raise ValueError("Each entry in 'countries' needs a 'value'")

        # Parse delay config
        delay = DelayConfig()
        if 'delay' in data:
            delay_data = data['delay']
            if not isinstance(delay_data, dict):
                raise ValueError("'delay' must be a dictionary")
            delay.min_ms = delay_data.get('min_ms', delay.min_ms)
            delay.max_ms = delay_data.get('max_ms', delay.max_ms)

        if not isinstance(delay.min_ms, int) or not isinstance(delay.max_ms, int):
            raise ValueError("'delay.min_ms' and 'delay.max_ms' must be integers")
        if delay.min_ms < 0 or delay.max_ms < delay.min_ms:
            raise ValueError("'delay' must satisfy 0 <= min_ms <= max_ms")

        # Parse output config
        output = OutputConfig()
        if 'output' in data:
            output_data = data['output']
            if isinstance(output_data, dict):
                output.output_dir = output_data.get('output_dir', output.output_dir)
                output.state_file = output_data.get('state_file', output.state_file)

        return cls(
            country_code=country_code.strip().upper() if country_code else None,
            country_label=data.get('country_label'),
            sections=[str(s) for s in sections],
            countries=countries,
            endpoint=data.get('endpoint'),
            delay=delay,
            output=output
        )


def load_profile(file_path: str) -> HarvestProfile:
    """
    Load a profile from a YAML file.

    Args:
        file_path: Path to YAML profile file

    Returns:
        HarvestProfile instance

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If profile is invalid
        yaml.YAMLError: If YAML parsing fails
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Profile file not found: {file_path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if data is None:
        return HarvestProfile()

    if not isinstance(data, dict):
        raise ValueError("Profile file must contain a YAML dictionary")

    return HarvestProfile.from_dict(data)


def validate_profile(profile: HarvestProfile) -> List[str]:
    """
    Validate a profile and return a list of warnings (not errors).

    Args:
        profile: Profile to validate

    Returns:
        List of warning messages (empty if no warnings)
    """
    warnings = []

    if profile.endpoint and not profile.endpoint.startswith('https://'):
        warnings.append(f"Endpoint is not HTTPS: {profile.endpoint}")

    if profile.country_code and len(profile.country_code) != 2:
        warnings.append(f"Country code does not look like ISO alpha-2: {profile.country_code}")

    if profile.delay.min_ms < 1000:
        warnings.append(f"delay.min_ms is very low ({profile.delay.min_ms} ms); the API may rate-limit")

    if profile.countries is not None and profile.country_code:
        values = {str(c['value']).upper() for c in profile.countries}
        if profile.country_code not in values:
            warnings.append(f"country_code {profile.country_code} is not in the 'countries' list")

    return warnings
