"""The UI-process side of the bridge: the API handed to plugins, the user
style sheet and the host's original secondary script."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from taut.ipc.channel import CONFIG_CHANGED, GET_ORIGINAL_PRELOAD, START_PLUGINS, Channel

from .export_index import ExportIndex
from .patch_chain import PatchChain

USER_CSS_ELEMENT_ID = "taut-user-css-style"


class TautAPI:
    """Everything a plugin may use; passed to each plugin's constructor."""

    def __init__(self, channel: Channel, exports: ExportIndex, patches: PatchChain, *, logger: Any = None) -> None:
        self._channel = channel
        self._exports = exports
        self._patches = patches
        self._logger = logger

    @property
    def exports(self) -> ExportIndex:
        return self._exports

    def start_plugins(self) -> Any:
        """Ask the control process to deliver every plugin with its config."""
        return self._channel.invoke(START_PLUGINS)

    def on_config_change(self, callback: Callable[[str, dict[str, Any]], None]) -> Callable[[], None]:
        return self._channel.on(CONFIG_CHANGED, callback)

    def find_export(self, predicate: Callable[[Any], bool], all: bool = False) -> Any:
        return self._exports.find_export(predicate, all)

    def find_by_props(self, props: Iterable[str], all: bool = False) -> Any:
        return self._exports.find_by_props(props, all)

    def find_component(self, name: str, all: bool = False, predicate: Callable[[Any], bool] | None = None) -> Any:
        return self._exports.find_component(name, all, predicate)

    def patch_component(self, original: Any, replacer: Callable[[Any], Any]) -> Callable[[], None]:
        return self._patches.patch_component(original, replacer)

    def unpatch_component(self, replacer: Callable[[Any], Any]) -> bool:
        return self._patches.unpatch_component(replacer)

    def log(self, *args: Any, plugin: str | None = None) -> None:
        if self._logger is None:
            return
        self._logger.event(event="plugin.log", plugin=plugin, message=" ".join(str(arg) for arg in args))


class UserStyle:
    """Keeps one ``<style>`` element in the document head in sync with user.css.

    ``document`` is the page's DOM object (``getElementById``,
    ``createElement``, ``head.appendChild``).
    """

    def __init__(self, document: Any, *, logger: Any = None) -> None:
        self._document = document
        self._logger = logger
        self.css = ""

    def _element(self) -> Any:
        style = self._document.getElementById(USER_CSS_ELEMENT_ID)
        if style is None:
            style = self._document.createElement("style")
            style.id = USER_CSS_ELEMENT_ID
            style.textContent = self.css
            self._document.head.appendChild(style)
            if self._logger is not None:
                self._logger.event(event="style.element_created", level="debug")
        return style

    def ensure(self) -> None:
        style = self._element()
        if style.textContent != self.css:
            style.textContent = self.css

    def update(self, css: str) -> None:
        self.css = str(css or "")
        try:
            self.ensure()
        except Exception as exc:
            if self._logger is not None:
                self._logger.event(event="style.update_failed", level="error", error=exc)

    def on_removed(self, node: Any) -> None:
        """Restore the element when the page removes it."""
        if getattr(node, "id", None) == USER_CSS_ELEMENT_ID:
            self.ensure()


def exec_source(code: str, *, filename: str = "<original-preload>") -> dict[str, Any]:
    namespace: dict[str, Any] = {"__name__": "__taut_original_preload__"}
    exec(compile(code, filename, "exec"), namespace)
    return namespace


def run_original_preload(
    channel: Channel,
    *,
    runner: Callable[[str], Any] = exec_source,
    logger: Any = None,
) -> bool:
    """Fetch the host's own secondary script from the control process and run it."""
    try:
        code = channel.invoke(GET_ORIGINAL_PRELOAD)
        if not code:
            return False
        if logger is not None:
            logger.event(event="preload.evaluating")
        runner(code)
    except Exception as exc:
        if logger is not None:
            logger.event(event="preload.eval_failed", level="error", error=exc)
        return False
    return True
