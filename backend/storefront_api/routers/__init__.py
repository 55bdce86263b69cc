"""HTTP routers. Each module exposes a `router` mounted by main.py."""
