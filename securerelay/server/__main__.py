"""
Server entry point: delegates to securerelay.server.server module.

Run with:
    python -m securerelay.server
"""

from securerelay.server.server import main

if __name__ == "__main__":
    main()
