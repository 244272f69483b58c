from typing import Annotated

from pydantic import BeforeValidator, Field

RpcPort = Annotated[
    int,
    BeforeValidator(lambda x: int(x.strip()) if isinstance(x, str) else x),
    Field(ge=1, le=65535),
]


MAX_UNIX_TIMESTAMP = 2**64 - 1

UnixTimestamp = Annotated[int, Field(ge=0, le=MAX_UNIX_TIMESTAMP)]


HexString = Annotated[
    str,
    BeforeValidator(lambda x: x.lower() if isinstance(x, str) else x),
    Field(pattern=r"^[0-9a-f]*$"),
]
