import logging

from doodle.config import Config
from doodle.server import create_app

logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app, socketio = create_app()
