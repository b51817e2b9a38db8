"""
Client entry point: delegates to securerelay.client.client module.

Run with:
    python -m securerelay.client
"""

from securerelay.client.client import main

if __name__ == "__main__":
    main()
