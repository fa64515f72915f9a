"""
Wire messages: the DKG conversation and the signing request.

Everything a remote party sends goes through one of these models before it
reaches a session, so shape errors surface as MalformedInput instead of
whatever the arithmetic underneath happens to raise.
"""

from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union

from eth_utils import is_address
from pydantic import (AfterValidator, BaseModel, BeforeValidator, Field, StrictInt,
                      StrictStr, TypeAdapter, ValidationError, field_validator)

from .curve import point_from_hex, scalar_from_hex
from .dkg import TOTAL_PARTIES, party_index
from .errors import MalformedInput
from .tss import CLIENT_SHARE_INDICES, ClientShare


def _point_hex(value: str) -> str:
    point_from_hex(value)
    return value


def _share_hex(value: str) -> str:
    scalar_from_hex(value, "share")
    return value


def _address(value: str) -> str:
    if not is_address(value):
        raise ValueError(f"{value!r} is not an address")
    return value


PartyIndex = Annotated[int, BeforeValidator(party_index), Field(ge=1, le=TOTAL_PARTIES)]
PointHex = Annotated[StrictStr, AfterValidator(_point_hex)]
ShareHex = Annotated[StrictStr, AfterValidator(_share_hex)]
Address = Annotated[StrictStr, AfterValidator(_address)]


class InitMessage(BaseModel):
    type: Literal["init"]


class CommitmentsMessage(BaseModel):
    """The client's commitment set, C_0 first."""
    type: Literal["commitments"]
    commitments: List[PointHex]


class SharesMessage(BaseModel):
    type: Literal["shares"]
    shares: Dict[PartyIndex, ShareHex]
    # what the client derived on its side, compared against the host's result.
    address: Optional[Address] = None


DKGMessage = Annotated[Union[InitMessage, CommitmentsMessage, SharesMessage],
                       Field(discriminator="type")]
_dkg_message = TypeAdapter(DKGMessage)


class ClientSharePayload(BaseModel):
    share: int = Field(gt=0)
    index: StrictInt

    @field_validator("share", mode="before")
    @classmethod
    def _decode_share(cls, value):
        return scalar_from_hex(value, "clientShare.share")

    @field_validator("index")
    @classmethod
    def _client_held(cls, value):
        if value not in CLIENT_SHARE_INDICES:
            raise ValueError(f"must be one of {CLIENT_SHARE_INDICES}, got {value}")
        return value

    def to_client_share(self) -> ClientShare:
        return ClientShare(self.share, self.index)


class SigningRequest(BaseModel):
    client_share: ClientSharePayload = Field(alias="clientShare")
    sender_address: Address = Field(alias="senderAddress")
    recipient: Address
    amount: Decimal = Field(gt=0, allow_inf_nan=False)

    @field_validator("amount", mode="before")
    @classmethod
    def _not_a_flag(cls, value):
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return value


def _describe(error: ValidationError) -> str:
    first = error.errors(include_url=False)[0]
    where = ".".join(str(part) for part in first["loc"])
    return f"{where}: {first['msg']}" if where else first["msg"]


def parse_dkg_message(payload) -> Union[InitMessage, CommitmentsMessage, SharesMessage]:
    try:
        return _dkg_message.validate_python(payload)
    except ValidationError as e:
        raise MalformedInput(_describe(e)) from None


def parse_client_share(payload) -> ClientShare:
    """Validate {share, index} before any curve arithmetic touches it."""
    try:
        return ClientSharePayload.model_validate(payload).to_client_share()
    except ValidationError as e:
        raise MalformedInput(f"clientShare {_describe(e)}") from None


def parse_signing_request(payload) -> SigningRequest:
    try:
        return SigningRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedInput(_describe(e)) from None
