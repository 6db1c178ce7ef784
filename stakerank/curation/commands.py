"""
Typed curation commands and the approval-payload dispatcher.

A token approval can carry a payload naming the operation to run with the
approved tokens. The payload is decoded once, at the edge, into a frozen
command; the engine only ever sees typed commands.

Payload layout (big-endian):

    selector (4) | entry id (32) | amount (32) | metadata (0..64, create only)
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Type, Union

from .curve import UINT256_MAX
from .errors import ValidationError
from .models import ENTRY_ID_SIZE, MAX_METADATA_SIZE

if TYPE_CHECKING:
    from .engine import CurationEngine
    from .hooks import CurationEvent

logger = logging.getLogger(__name__)


SELECTOR_SIZE = 4
AMOUNT_SIZE = 32
HEADER_SIZE = SELECTOR_SIZE + ENTRY_ID_SIZE + AMOUNT_SIZE
MAX_PAYLOAD_SIZE = HEADER_SIZE + MAX_METADATA_SIZE


def _selector(signature: str) -> bytes:
    return hashlib.sha256(signature.encode("ascii")).digest()[:SELECTOR_SIZE]


CREATE_SELECTOR = _selector("create(bytes32,uint256,bytes)")
UPVOTE_SELECTOR = _selector("upvote(bytes32,uint256)")
DOWNVOTE_SELECTOR = _selector("downvote(bytes32,uint256)")


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateCommand:
    entry_id: bytes
    amount: int
    metadata: bytes = b""

    async def apply(self, engine: "CurationEngine", caller: str) -> "CurationEvent":
        return await engine.create(caller, self.entry_id, self.amount, self.metadata)


@dataclass(frozen=True)
class UpvoteCommand:
    entry_id: bytes
    amount: int

    async def apply(self, engine: "CurationEngine", caller: str) -> "CurationEvent":
        return await engine.upvote(caller, self.entry_id, self.amount)


@dataclass(frozen=True)
class DownvoteCommand:
    entry_id: bytes
    amount: int

    async def apply(self, engine: "CurationEngine", caller: str) -> "CurationEvent":
        return await engine.downvote(caller, self.entry_id, self.amount)


@dataclass(frozen=True)
class WithdrawCommand:
    """Not reachable from approval payloads; withdrawals move no caller tokens."""
    entry_id: bytes
    amount: int

    async def apply(self, engine: "CurationEngine", caller: str) -> "CurationEvent":
        return await engine.withdraw(caller, self.entry_id, self.amount)


Command = Union[CreateCommand, UpvoteCommand, DownvoteCommand, WithdrawCommand]

_BY_SELECTOR: Dict[bytes, Type[Union[CreateCommand, UpvoteCommand, DownvoteCommand]]] = {
    CREATE_SELECTOR: CreateCommand,
    UPVOTE_SELECTOR: UpvoteCommand,
    DOWNVOTE_SELECTOR: DownvoteCommand,
}
_SELECTOR_BY_TYPE = {cls: sel for sel, cls in _BY_SELECTOR.items()}


# -----------------------------------------------------------------------------
# Encoding / decoding
# -----------------------------------------------------------------------------

def encode_approval(command: Union[CreateCommand, UpvoteCommand, DownvoteCommand]) -> bytes:
    """Serialize a command into an approval payload."""
    selector = _SELECTOR_BY_TYPE.get(type(command))
    if selector is None:
        raise ValidationError(f"{type(command).__name__} cannot be sent with an approval")
    if len(command.entry_id) != ENTRY_ID_SIZE:
        raise ValidationError(f"entry id must be {ENTRY_ID_SIZE} bytes")
    if not 0 <= command.amount <= UINT256_MAX:
        raise ValidationError(f"amount out of range: {command.amount}")
    payload = selector + command.entry_id + command.amount.to_bytes(AMOUNT_SIZE, "big")
    if isinstance(command, CreateCommand):
        payload += command.metadata
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValidationError(f"payload too long: {len(payload)} > {MAX_PAYLOAD_SIZE}")
    return payload


def decode_approval(data: bytes, approved_amount: int) -> Command:
    """
    Decode an approval payload into a typed command.

    Raises:
        ValidationError: payload too short/long, unknown selector, trailing
            bytes on a non-create command, or an amount that differs from
            ``approved_amount``
    """
    if len(data) > MAX_PAYLOAD_SIZE:
        raise ValidationError(f"payload too long: {len(data)} > {MAX_PAYLOAD_SIZE}")
    if len(data) < HEADER_SIZE:
        raise ValidationError(f"payload too short: {len(data)} < {HEADER_SIZE}")

    selector = bytes(data[:SELECTOR_SIZE])
    command_type = _BY_SELECTOR.get(selector)
    if command_type is None:
        raise ValidationError(f"unknown selector: {selector.hex()}")

    eid = bytes(data[SELECTOR_SIZE:SELECTOR_SIZE + ENTRY_ID_SIZE])
    amount = int.from_bytes(data[SELECTOR_SIZE + ENTRY_ID_SIZE:HEADER_SIZE], "big")
    tail = bytes(data[HEADER_SIZE:])

    if amount != approved_amount:
        raise ValidationError(f"payload amount {amount} != approved amount {approved_amount}")

    if command_type is CreateCommand:
        return CreateCommand(eid, amount, tail)
    if tail:
        raise ValidationError(f"unexpected {len(tail)} trailing bytes for {command_type.__name__}")
    return command_type(eid, amount)


async def dispatch_approval(
    engine: "CurationEngine",
    caller: str,
    approved_amount: int,
    data: bytes,
) -> "CurationEvent":
    """Decode an approval payload and run it against ``engine``."""
    command = decode_approval(data, approved_amount)
    logger.debug(f"Dispatching {type(command).__name__} from {caller}")
    return await engine.execute(caller, command)
