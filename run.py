#!/usr/bin/env python3
"""
Entry point for the chess tournament service.

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development, production or testing (default: development)
    PORT: Port to run on (default: 5000)
    DATABASE_URL: SQLAlchemy database URL
    REDIS_URL: Redis for live change notification and schedule locks (optional)
    ADMIN_USER_IDS: Comma separated identity-provider ids allowed to manage tournaments
    LOG_LEVEL: Logging level (default: INFO)
"""
import os
import logging


def run():
    """Run the tournament service."""
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    from arena.app import create_app

    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    logging.getLogger(__name__).info(f"Starting tournament service on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)


if __name__ == '__main__':
    run()
