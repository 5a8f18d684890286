import unittest

from taut.intercept.redirects import (
    CONSTRUCTOR,
    RedirectTable,
    child_path,
    constructor_path,
    module_root,
)


class RedirectTableTests(unittest.TestCase):
    def test_path_helpers(self) -> None:
        root = module_root("electron")
        self.assertEqual(root, "<electron>")
        self.assertEqual(child_path(root, "BrowserWindow"), "<electron>.BrowserWindow")
        self.assertEqual(
            constructor_path(child_path(root, "BrowserWindow")),
            f"<electron>.BrowserWindow.{CONSTRUCTOR}",
        )

    def test_register_get_unregister(self) -> None:
        table = RedirectTable()
        handler = lambda target, this, args, kwargs: None  # noqa: E731
        table.register("<electron>.Menu.setApplicationMenu", handler)
        self.assertIs(table.get("<electron>.Menu.setApplicationMenu"), handler)
        self.assertIsNone(table.get("<electron>.Menu"))
        self.assertIn("<electron>.Menu.setApplicationMenu", table)
        self.assertEqual(len(table), 1)
        self.assertIs(table.unregister("<electron>.Menu.setApplicationMenu"), handler)
        self.assertEqual(table.paths(), [])

    def test_register_as_decorator(self) -> None:
        table = RedirectTable()

        @table.register("<electron>.app.quit")
        def quit_handler(target, this, args, kwargs):
            return None

        self.assertIs(table.get("<electron>.app.quit"), quit_handler)
        self.assertEqual(list(table), ["<electron>.app.quit"])

    def test_non_callable_handler_rejected(self) -> None:
        table = RedirectTable()
        with self.assertRaises(TypeError):
            table.register("<electron>.x", "not callable")


if __name__ == "__main__":
    unittest.main()
