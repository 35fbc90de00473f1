"""
Tests for the command-line entry point.

Only commands that need no network access are exercised.
"""

import argparse
import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from harvester import _run_command
from persistence import JSONStateStore
from profile_loader import HarvestProfile


def make_args(command, **overrides):
    values = dict(command=command, profile=None, country=None, label=None, section=None,
                  all=False, restart=False, output=None, state_file=None)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestCliCommands(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.state_file = str(Path(self.tmp.name) / 'state.json')
        self.output = str(Path(self.tmp.name) / 'out')

    def tearDown(self):
        self.tmp.cleanup()

    async def _run(self, command, **overrides):
        args = make_args(command, state_file=self.state_file, output=self.output, **overrides)
        buffer = io.StringIO()
        with contextlib.redirect_stdout(buffer):
            code = await _run_command(args, HarvestProfile())
        return code, buffer.getvalue()

    async def test_status_applies_country(self):
        """The status command should apply and persist --country."""
        code, output = await self._run('status', country='de', label='Germany')

        self.assertEqual(code, 0)
        status = json.loads(output)
        self.assertEqual(status['country'], {'code': 'DE', 'label': 'Germany'})
        self.assertEqual(JSONStateStore(self.state_file).load().country_code, 'DE')

    async def test_clear_keeps_country(self):
        """The clear command should keep the selected country."""
        await self._run('status', country='AT')
        code, _ = await self._run('clear')

        self.assertEqual(code, 0)
        state = JSONStateStore(self.state_file).load()
        self.assertEqual(state.country_code, 'AT')
        self.assertIsNone(state.sections)


if __name__ == '__main__':
    unittest.main()
