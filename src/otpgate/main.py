"""Application entry point for the otpgate server."""

from otpgate.app import App
from otpgate.config import Config
from otpgate.logging import setup_logging
from otpgate.web.runner import run_server


def main() -> None:
    config = Config()  # type: ignore[call-arg]
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
