"""Application entry point for the seqalloc server."""

from seqalloc.app import App
from seqalloc.config import Config
from seqalloc.logging import setup_logging
from seqalloc.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
