import codecs
from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from chatrelay.bootstrap.config.loader import get_configfile


class ServerSettings(BaseModel):
    host: Annotated[
        str,
        Field(
            description="Bind address for chat clients.",
            default="0.0.0.0"
        )
    ]

    port: Annotated[
        int,
        Field(
            description="TCP port chat clients connect to. 0 lets the OS pick one.",
            default=9001,
            ge=0,
            le=65535
        )
    ]

    backlog: Annotated[
        int,
        Field(
            description="Maximum number of pending TCP connections.",
            default=128,
            gt=0
        )
    ]

    timeout_graceful_shutdown: Annotated[
        float,
        Field(
            description="Maximum time allowed for graceful shutdown.",
            default=5.0,
            ge=0
        )
    ]

    max_line_size: Annotated[
        int,
        Field(
            description=(
                "Maximum size in bytes of a single protocol line.\n"
                "A client sending a longer line is disconnected."
            ),
            default=64 * 1024,
            gt=0
        )
    ]

    delivery_timeout: Annotated[
        float,
        Field(
            description=(
                "Maximum time in seconds spent delivering one message to one client.\n"
                "A client that does not read its socket loses the message instead of\n"
                "stalling the whole room."
            ),
            default=5.0,
            gt=0
        )
    ]

    max_delivery_timeouts: Annotated[
        int,
        Field(
            description=(
                "Number of consecutive delivery timeouts after which a client is\n"
                "considered stalled and its connection is dropped."
            ),
            default=3,
            gt=0
        )
    ]

    encoding: Annotated[
        str,
        Field(
            description="Text encoding of protocol lines.",
            default="utf-8"
        )
    ]

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding '{v}'")
        return v


class RelayConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHATRELAY_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    server: Annotated[
        ServerSettings,
        Field(
            description=(
                "Listener configuration.\n"
                "Controls where the relay accepts client connections and the\n"
                "runtime limits applied to each of them."
            ),
            default_factory=ServerSettings
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=get_configfile()),
        )
