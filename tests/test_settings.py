from media_tracker.core.settings import SettingsService
from media_tracker.storage.config_file import load_config_from_file, save_config_to_file
from media_tracker.storage.local import LocalAdapter
from media_tracker.storage.local_settings import LOCAL_STORE_FILENAME, LocalSettingsStore


class TestLocalSettingsStore:
    def test_defaults(self, local_store):
        assert local_store.load_settings() == {
            "themePrimary": "#0b1220",
            "themeHighlight": "#7c3aed",
            "cardSize": "medium",
            "halfStarsEnabled": True,
            "omdbApiKey": "",
        }

    def test_typed_round_trips(self, local_store):
        local_store.save_theme_colors("#111111", "#222222")
        local_store.save_card_size("large")
        local_store.save_half_stars_enabled(False)
        local_store.save_omdb_api_key("key")

        assert local_store.load_theme_colors() == {
            "primary": "#111111",
            "highlight": "#222222",
        }
        assert local_store.load_card_size() == "large"
        assert local_store.load_half_stars_enabled() is False
        assert local_store.load_omdb_api_key() == "key"

    def test_half_stars_accepts_string_values(self, local_store):
        local_store.set_item("halfStarsEnabled", "false")
        assert local_store.load_half_stars_enabled() is False
        local_store.set_item("halfStarsEnabled", "true")
        assert local_store.load_half_stars_enabled() is True

    def test_item_access(self, local_store):
        assert local_store.get_item("x", "d") == "d"
        local_store.set_item("x", 1)
        assert local_store.get_item("x") == 1
        local_store.remove_item("x")
        assert local_store.get_item("x") is None
        local_store.set_item("y", 2)
        local_store.clear()
        assert local_store.get_item("y") is None

    def test_corrupt_file_reads_as_empty(self, config_dir):
        (config_dir / LOCAL_STORE_FILENAME).write_text("{oops", encoding="utf-8")
        store = LocalSettingsStore(config_dir)
        assert store.load_card_size() == "medium"
        assert store.set_item("cardSize", "small") is True
        assert store.load_card_size() == "small"


class TestSettingsService:
    async def test_not_connected_uses_local_store(self, local_store):
        local_store.save_card_size("small")
        service = SettingsService(local_store)

        settings = await service.load_all_settings(None)
        assert settings["cardSize"] == "small"
        assert await service.load_all_settings(LocalAdapter()) == settings

    async def test_file_overrides_local_store(self, local_store, local_adapter):
        local_store.save_card_size("small")
        local_store.save_omdb_api_key("local-key")
        await save_config_to_file(local_adapter, {"cardSize": "large", "extra": 1})

        settings = await SettingsService(local_store).load_all_settings(local_adapter)
        assert settings["cardSize"] == "large"
        assert settings["omdbApiKey"] == "local-key"
        assert settings["extra"] == 1

    async def test_effective_settings_fills_defaults(self, local_store, local_adapter):
        await save_config_to_file(local_adapter, {"themePrimary": "#ff0000"})
        settings = await SettingsService(local_store).effective_settings(local_adapter)
        assert settings["themePrimary"] == "#ff0000"
        assert settings["themeHighlight"] == "#7c3aed"
        assert settings["halfStarsEnabled"] is True

    async def test_write_through_when_connected(self, local_store, local_adapter):
        service = SettingsService(local_store)
        await save_config_to_file(local_adapter, {"cardSize": "large"})

        assert await service.update_api_key(local_adapter, "abc") is True
        assert await service.update_half_stars(local_adapter, False) is True
        assert await service.update_theme(local_adapter, "#000000", "#ffffff") is True

        assert local_store.load_omdb_api_key() == "abc"
        assert local_store.load_half_stars_enabled() is False
        assert await load_config_from_file(local_adapter) == {
            "cardSize": "large",
            "omdbApiKey": "abc",
            "halfStarsEnabled": False,
            "themePrimary": "#000000",
            "themeHighlight": "#ffffff",
        }

    async def test_write_through_when_disconnected(self, local_store):
        service = SettingsService(local_store)
        assert await service.update_card_size(None, "small") is False
        assert local_store.load_card_size() == "small"

    async def test_save_all_settings(self, local_store, local_adapter):
        service = SettingsService(local_store)
        settings = {"themePrimary": "#123456", "cardSize": "large", "omdbApiKey": "k"}

        assert await service.save_all_settings(local_adapter, settings) is True
        assert await load_config_from_file(local_adapter) == settings
        assert local_store.load_card_size() == "large"
        # Only one of the two theme colors was given, so the theme is untouched.
        assert local_store.load_theme_colors()["primary"] == "#0b1220"

    async def test_save_all_settings_disconnected(self, local_store):
        service = SettingsService(local_store)
        assert await service.save_all_settings(None, {"cardSize": "small"}) is False
        assert local_store.load_card_size() == "small"

    async def test_update_setting_routes_known_keys(self, local_store, local_adapter):
        service = SettingsService(local_store)
        assert await service.update_setting(local_adapter, "cardSize", "small")
        assert await service.update_setting(local_adapter, "customKey", "v")

        assert local_store.load_card_size() == "small"
        assert await load_config_from_file(local_adapter) == {
            "cardSize": "small",
            "customKey": "v",
        }
