import logging

from .app import create_app
from .config import BOOTSTRAP_ENABLED, HOST, PORT
from .logger import configure_logging

logger = logging.getLogger(__name__)


def main():
    configure_logging()
    app = create_app(start_bootstrap=BOOTSTRAP_ENABLED)
    logger.info("Server running on http://%s:%s", HOST, PORT)
    app.run(host=HOST, port=PORT, threaded=True)


if __name__ == '__main__':
    main()
