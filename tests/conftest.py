import os
from typing import Generator

import pytest
import yaml

from chatrelay.core.service.registry import Registry
from chatrelay.infra.line_codec import LineCodec
from tests.fake.fake_transport import FakeTransport
from tests.helpers import FakeRelayConfig


@pytest.fixture
def codec():
    return LineCodec()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return Registry(delivery_timeout=0.1)


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "chatrelay.yaml"

    data = {
        "server": {
            "host": "127.0.0.1",
            "port": 9100,
            "backlog": 10,
            "timeout_graceful_shutdown": 1,
            "max_line_size": 1024,
            "delivery_timeout": 2.5,
            "encoding": "latin-1",
        }
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def relay_env(config_file) -> Generator[None, None, None]:
    backup = os.environ.copy()

    try:
        os.environ["TEST_CHATRELAYCONFIG"] = str(config_file)
        yield
    finally:
        os.environ.clear()
        os.environ.update(backup)


@pytest.fixture
def relay_config(relay_env) -> FakeRelayConfig:
    return FakeRelayConfig()
