"""Plugin discovery, bundling, delivery and the UI-side plugin host."""
