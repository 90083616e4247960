#!/usr/bin/env python3
"""
Marketplace Backend - Main application entry point
"""
import os

from server import create_app
from socket_events import socketio

app = create_app()

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = app.config.get('DEBUG', False)

    socketio.run(
        app,
        host='0.0.0.0',
        port=port,
        debug=debug
    )
