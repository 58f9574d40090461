import asyncio


def get_remote_addr(transport: asyncio.BaseTransport) -> tuple[str, int] | None:
    """Address of the peer of `transport`, or None if it cannot be determined."""
    sock = transport.get_extra_info("socket")
    if sock is not None:
        try:
            info = sock.getpeername()
        except OSError:
            return None
        return _as_addr(info)

    return _as_addr(transport.get_extra_info("peername"))


def format_addr(addr: tuple[str, int] | None) -> str:
    return "%s:%d" % addr if addr else ""


def _as_addr(info: object) -> tuple[str, int] | None:
    # IPv6 peers report (host, port, flowinfo, scope_id)
    if isinstance(info, (list, tuple)) and len(info) >= 2:
        return str(info[0]), int(info[1])
    return None
