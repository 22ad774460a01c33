from django.core.cache import caches
from django.test import TestCase

from configuration.models import Configuration


class TestConfigurationSignal(TestCase):
    def setUp(self):
        caches["configuration_cache"].clear()

    def test_signal_caches_valid_value(self):
        Configuration.objects.create(
            key="signal-key",
            value="42",
            data_type=Configuration.DataType.NUMBER,
        )
        self.assertEqual(caches["configuration_cache"].get("config_signal-key"), 42)

    def test_signal_evicts_invalid_json(self):
        config = Configuration.objects.create(
            key="signal-json",
            value="[1]",
            data_type=Configuration.DataType.JSON,
        )
        self.assertEqual(caches["configuration_cache"].get("config_signal-json"), [1])

        config.value = "not valid json"
        config.save()
        self.assertIsNone(caches["configuration_cache"].get("config_signal-json"))

    def test_signal_evicts_deleted_value(self):
        config = Configuration.objects.create(
            key="signal-delete",
            value="5",
            data_type=Configuration.DataType.NUMBER,
        )
        config.delete()
        self.assertIsNone(caches["configuration_cache"].get("config_signal-delete"))
