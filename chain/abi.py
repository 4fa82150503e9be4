"""Minimal ABI encoding for contract calls and event logs."""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_abi import decode, encode
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector, to_bytes


@dataclass(frozen=True)
class ContractFunction:
    """A contract function by signature.

    ``inputs``/``outputs`` are canonical ABI type strings.
    """
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode(self, *args: Any) -> str:
        """Encode a call to this function as 0x-prefixed calldata."""
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}"
            )
        return "0x" + (self.selector + encode(list(self.inputs), list(args))).hex()

    def decode(self, data: str) -> Tuple[Any, ...]:
        """Decode the return data of a call to this function."""
        return tuple(decode(list(self.outputs), to_bytes(hexstr=data)))


@dataclass(frozen=True)
class ContractEvent:
    """A contract event.

    ``params`` holds ``(name, type, indexed)`` triples in declaration order.
    """
    name: str
    params: Tuple[Tuple[str, str, bool], ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(param[1] for param in self.params)})"

    @property
    def topic(self) -> str:
        return "0x" + event_signature_to_log_topic(self.signature).hex()

    def encode_topic(self, abi_type: str, value: Any) -> str:
        """Encode a value for use as an indexed topic filter."""
        return "0x" + encode([abi_type], [value]).hex()

    def matches(self, log: Dict[str, Any]) -> bool:
        topics = log.get("topics") or []
        return bool(topics) and topics[0].lower() == self.topic

    def decode(self, log: Dict[str, Any]) -> Dict[str, Any]:
        """Decode a raw log into a ``{param name: value}`` dict.

        Raises:
            ValueError: If the log was not emitted by this event
        """
        if not self.matches(log):
            raise ValueError(f"Log is not a {self.name} event")

        topics = log["topics"][1:]
        indexed = [param for param in self.params if param[2]]
        if len(topics) != len(indexed):
            raise ValueError(
                f"{self.name} expects {len(indexed)} indexed topics, got {len(topics)}"
            )

        values: Dict[str, Any] = {}
        for (name, abi_type, _), topic in zip(indexed, topics):
            values[name] = decode([abi_type], to_bytes(hexstr=topic))[0]

        unindexed = [param for param in self.params if not param[2]]
        data = to_bytes(hexstr=log.get("data") or "0x")
        decoded = decode([param[1] for param in unindexed], data)
        for (name, _, _), value in zip(unindexed, decoded):
            values[name] = value

        return values


def block_number_of(log: Dict[str, Any]) -> int:
    block_number = log.get("blockNumber")
    if block_number is None:
        return 0
    if isinstance(block_number, str):
        return int(block_number, 16)
    return int(block_number)
