#!/usr/bin/env python3
"""Run the licence server web application."""

import logging

from config.settings import HOST, LOG_FORMAT, LOG_LEVEL, PORT
from web import create_app

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

app = create_app()

if __name__ == "__main__":
    app.run(host=HOST, port=PORT)
