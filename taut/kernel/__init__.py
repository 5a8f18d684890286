"""Kernel services shared by the control and UI-rendering processes."""
