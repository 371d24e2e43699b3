import logging
import sys

from ftpsession.cli import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logging.info("Stopped by user")
        sys.exit(130)
