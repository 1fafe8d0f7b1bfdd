from typing import Annotated, Union

import pydantic as pdt

import fidelis.backends.memory as memory
import fidelis.backends.sqlite as sqlite

StoreKind = Annotated[
    Union[sqlite.SqliteKeyValueStore, memory.MemoryKeyValueStore],
    pdt.Field(discriminator="kind"),
]
