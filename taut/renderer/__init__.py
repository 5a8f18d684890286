"""UI-rendering process side: export search, component patching and the plugin bridge."""
