"""
Signed oracle payload.

The oracle signs the exact JSON text of a `generateSignedIntegers` result.
After the signature gate admits it, the text is decoded into
:class:`RandomOrgData`; the 32 values in `data` become the seed for every
commitment matched by the report, and `completionTime` selects which
commitments match.
"""

from __future__ import annotations

import calendar
import time
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as _PydanticValidationError

from ..constants import COMPLETION_TIME_FORMAT, SEED_LEN
from ..errors import ParseError

Byte = Annotated[int, Field(ge=0, le=255)]
U32 = Annotated[int, Field(ge=0, le=(1 << 32) - 1)]


class License(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, strict=True)

    type: str
    text: str
    info_url: Optional[str] = Field(default=None, alias="infoUrl")


class RandomOrgData(BaseModel):
    """
    Decoded oracle report. Unknown keys are ignored; every required key must
    be present with the right JSON type.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, strict=True)

    method: str
    hashed_api_key: str = Field(alias="hashedApiKey")
    n: U32
    min: U32
    max: U32
    replacement: bool
    base: U32
    pregenerated_randomization: Optional[str] = Field(default=None, alias="pregeneratedRandomization")
    data: List[Byte] = Field(min_length=SEED_LEN, max_length=SEED_LEN)
    license: License
    license_data: Optional[str] = Field(default=None, alias="licenseData")
    user_data: Optional[str] = Field(default=None, alias="userData")
    ticket_data: Optional[str] = Field(default=None, alias="ticketData")
    completion_time: str = Field(alias="completionTime")
    serial_number: U32 = Field(alias="serialNumber")

    def seed(self) -> bytes:
        return bytes(self.data)

    def completion_timestamp(self) -> int:
        return parse_completion_time(self.completion_time)


def decode_randomorg_data(text: str) -> RandomOrgData:
    try:
        return RandomOrgData.model_validate_json(text)
    except _PydanticValidationError as e:
        raise ParseError("Invalid random org data format!", details={"errors": e.error_count()}) from e


def parse_completion_time(value: str) -> int:
    """
    Parse "YYYY-MM-DD HH:MM:SSZ" (always UTC) into UNIX seconds.

    >>> parse_completion_time("2023-01-09 02:01:26Z")
    1673229686
    """
    try:
        tm = time.strptime(value, COMPLETION_TIME_FORMAT)
    except (TypeError, ValueError) as e:
        raise ParseError("Invalid date string format!", details={"value": str(value)}) from e
    return calendar.timegm(tm)


__all__ = ["License", "RandomOrgData", "decode_randomorg_data", "parse_completion_time"]
