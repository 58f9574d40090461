import logging

from chatrelay.bootstrap.config.loader import get_cli_args
from chatrelay.bootstrap.deps import get_cp
from chatrelay.core.helpers.utils import setup_signal_handler, setup_logging
from chatrelay.core.transport.server import BindError


def main():
    cli = get_cli_args()
    setup_logging(cli.log_level)

    controlplane = get_cp()
    loop = controlplane.loop

    try:
        with setup_signal_handler(loop) as stop_event:
            loop.run_until_complete(controlplane.start(stop_event))
    except BindError as ex:
        logging.getLogger("chatrelay.boot").critical(f"Unable to start the listener: {ex}")
        raise SystemExit(1)
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.run_until_complete(loop.shutdown_default_executor())
        finally:
            loop.close()


if __name__ == "__main__":
    main()
