import json
from functools import lru_cache

from pydantic import ValidationError

from chatrelay.bootstrap.config.loader import get_cli_args
from chatrelay.bootstrap.config.settings import RelayConfig
from chatrelay.core.controlplane import ControlPlane
from chatrelay.infra.line_codec import LineCodec


@lru_cache
def get_cp() -> ControlPlane:
    config = get_config()

    return ControlPlane(
        config=config,
        codec=LineCodec(encoding=config.server.encoding),
    )


@lru_cache
def get_config() -> RelayConfig:
    overrides = {}
    cli = get_cli_args()
    if cli.port is not None:
        overrides["server"] = {"port": cli.port}

    try:
        return RelayConfig(**overrides)
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}")
        raise SystemExit("\n".join(msg))
