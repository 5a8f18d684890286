import unittest

from taut.plugin_system.settings import deep_equal, diff_plugin_configs


class DeepEqualTests(unittest.TestCase):
    def test_structural_equality(self) -> None:
        self.assertTrue(deep_equal({"a": [1, {"b": 2}]}, {"a": [1, {"b": 2}]}))
        self.assertFalse(deep_equal({"a": [1, 2]}, {"a": [2, 1]}))
        self.assertFalse(deep_equal({"a": 1}, {"a": 1, "b": None}))

    def test_nan_equals_nan(self) -> None:
        self.assertTrue(deep_equal({"x": float("nan")}, {"x": float("nan")}))

    def test_bool_is_not_a_number(self) -> None:
        self.assertFalse(deep_equal(True, 1))
        self.assertFalse(deep_equal(0, False))
        self.assertTrue(deep_equal(1, 1.0))


class DiffPluginConfigsTests(unittest.TestCase):
    def test_only_changed_plugin_is_reported(self) -> None:
        old = {"A": {"enabled": True, "x": 1}, "B": {"enabled": True}}
        new = {"A": {"enabled": True, "x": 1}, "B": {"enabled": False}}
        self.assertEqual(diff_plugin_configs(old, new), {"B": {"enabled": False}})

    def test_missing_entries_mean_disabled(self) -> None:
        self.assertEqual(diff_plugin_configs({"A": {"enabled": False}}, {}), {})
        self.assertEqual(diff_plugin_configs({"A": {"enabled": True}}, {}), {"A": {"enabled": False}})
        self.assertEqual(diff_plugin_configs({}, {"C": {"enabled": True}}), {"C": {"enabled": True}})


if __name__ == "__main__":
    unittest.main()
