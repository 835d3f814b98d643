"""Envelopes exchanged with the proxy over its command socket."""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import Field
from typing_extensions import Annotated

from routesync._internal.core.models.common import WireModel
from routesync._internal.core.models.orders import AnyOrder


class ProxyConfigurationCommand(WireModel):
    type: Literal["PROXY"] = "PROXY"
    data: AnyOrder


class DumpStateCommand(WireModel):
    type: Literal["DUMP_STATE"] = "DUMP_STATE"


AnyCommand = Annotated[
    Union[ProxyConfigurationCommand, DumpStateCommand], Field(discriminator="type")
]


class ConfigMessage(WireModel):
    id: str
    command: AnyCommand
    metadata: Optional[dict[str, Any]] = None


class ConfigMessageStatus(str, Enum):
    PROCESSING = "PROCESSING"
    ERROR = "ERROR"
    OK = "OK"


class ConfigMessageAnswer(WireModel):
    id: str
    status: ConfigMessageStatus
    message: str = ""
    # serialized ConfigState in answers to DUMP_STATE
    data: Optional[dict[str, Any]] = None
