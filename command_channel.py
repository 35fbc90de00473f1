"""
Command channel.

Request/response dispatch for an external controller. Commands and
responses are plain dicts so any transport (HTTP, websocket, CLI) can carry
them; every response has an `ok` flag.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class CommandChannel:
    """Maps command names onto Orchestrator operations."""

    def __init__(self, orchestrator):
        self.orchestrator = orchestrator
        self._handlers = {
            'getStatus': self.get_status,
            'getCountries': self.get_countries,
            'getSections': self.get_sections,
            'setCountry': self.set_country,
            'start': self.start,
            'resume': self.resume,
            'clear': self.clear,
        }

    async def dispatch(self, command_type: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        handler = self._handlers.get(command_type)
        if handler is None:
            logger.warning(f"Unknown command: {command_type}")
            return {'ok': False, 'error': 'Unknown command.'}
        return await handler(options or {})

    async def get_status(self, options: Dict[str, Any]) -> Dict[str, Any]:
        return {'ok': True, 'status': self.orchestrator.status()}

    async def get_countries(self, options: Dict[str, Any]) -> Dict[str, Any]:
        context = await self.orchestrator.countries()
        return {'ok': True, **context}

    async def get_sections(self, options: Dict[str, Any]) -> Dict[str, Any]:
        return await self.orchestrator.load_sections(bool(options.get('forceRefresh')))

    async def set_country(self, options: Dict[str, Any]) -> Dict[str, Any]:
        country_code = (options.get('countryCode') or '').strip()
        if not country_code:
            return {'ok': False, 'error': 'countryCode is required.'}

        changed = self.orchestrator.update_country(country_code, options.get('label'))
        state = self.orchestrator.state
        return {
            'ok': True,
            'changed': changed,
            'country': {'code': state.country_code, 'label': state.country_label},
        }

    async def start(self, options: Dict[str, Any]) -> Dict[str, Any]:
        self.orchestrator.start(options.get('sectionKey'), bool(options.get('restart')))
        return {'ok': True, 'message': 'Harvest started.'}

    async def resume(self, options: Dict[str, Any]) -> Dict[str, Any]:
        self.orchestrator.resume()
        return {'ok': True, 'message': 'Resume requested.'}

    async def clear(self, options: Dict[str, Any]) -> Dict[str, Any]:
        self.orchestrator.clear()
        return {'ok': True}
