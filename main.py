"""
BRYNIX Bot - Server Entry Point
===============================

Run this to start the bot and its HTTP endpoints:
    python main.py

Configuration comes from environment variables (or a .env file).
Open http://<HOST>:<PORT>/wa-qr and scan the QR with WhatsApp the first time.
"""

import logging

import uvicorn

from brynix_bot.infrastructure.config import get_settings


def main():
    """Start the web server; the app lifespan starts the bot."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    settings = get_settings()

    print("\n" + "=" * 50)
    print("   BRYNIX Bot - WhatsApp Project Assistant")
    print("=" * 50)
    print(f"\n   Starting server at http://{settings.host}:{settings.port}")
    print("   Press Ctrl+C to stop\n")

    uvicorn.run(
        "brynix_bot.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
