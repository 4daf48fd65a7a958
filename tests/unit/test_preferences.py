# =============================================================================
# tests/unit/test_preferences.py
# Unit Tests for PreferenceStore
# =============================================================================

import asyncio
import json

from arwords_core.offline.preferences import PreferenceStore


class TestPreferenceStore:
    """JSON-backed lightweight tier"""

    def test_values_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "prefs.json"

        asyncio.run(PreferenceStore(path).set_bool("flag", True))

        assert asyncio.run(PreferenceStore(path).get_bool("flag")) is True

    def test_get_bool_ignores_non_bool_values(self, preferences):
        async def scenario():
            await preferences.set("flag", "yes")
            return await preferences.get_bool("flag")

        assert asyncio.run(scenario()) is None

    def test_remove_prefix(self, preferences):
        async def scenario():
            await preferences.set_bool("access:a", True)
            await preferences.set_bool("access:b", False)
            await preferences.set_bool("theme_dark", True)
            removed = await preferences.remove_prefix("access:")
            return removed, await preferences.get_bool("access:a"), await preferences.get_bool("theme_dark")

        removed, gone, kept = asyncio.run(scenario())

        assert removed == 2
        assert gone is None
        assert kept is True

    def test_corrupt_file_starts_empty(self, tmp_path):
        """Unreadable preferences never raise"""
        path = tmp_path / "prefs.json"
        path.write_text("{not json")

        assert asyncio.run(PreferenceStore(path).get_bool("flag")) is None

    def test_file_is_plain_json(self, tmp_path):
        path = tmp_path / "prefs.json"
        asyncio.run(PreferenceStore(path).set_bool("flag", False))

        assert json.loads(path.read_text()) == {"flag": False}
