"""Cross-process messaging between the control and UI-rendering processes."""
