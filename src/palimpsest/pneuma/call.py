"""
Call Builder - Bind a method name and typed arguments to a contract.

A ``CallDescriptor`` is immutable once built. Retrying after a rejection
or an expired estimate means building a fresh descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from ..errors import InvalidArgumentError
from ..utils import is_address, to_checksum_address
from .abi import ContractSchema, MethodSpec
from .codec import Present, check_value, decode_result, encode_call

if TYPE_CHECKING:
    from .tx import CostEstimate


@dataclass(frozen=True)
class BindingContext:
    """Target contract, network and calling account for built calls."""

    contract_address: str
    chain_id: int
    account: str
    schema: ContractSchema

    def __post_init__(self) -> None:
        for name in ("contract_address", "account"):
            if not is_address(getattr(self, name)):
                raise InvalidArgumentError(f"{name} is not an address: {getattr(self, name)!r}", field=name)
        object.__setattr__(self, "contract_address", to_checksum_address(self.contract_address))
        object.__setattr__(self, "account", to_checksum_address(self.account))


@dataclass(frozen=True)
class CallDescriptor:
    method: MethodSpec
    args: tuple[Any, ...]
    calldata: bytes
    contract_address: str
    chain_id: int
    account: str

    @property
    def mutates(self) -> bool:
        return self.method.mutates

    @property
    def arguments(self) -> dict[str, Any]:
        return {p.name: v for p, v in zip(self.method.inputs, self.args)}

    def decode(self, data: bytes) -> Any:
        return decode_result(self.method, data)

    def to_call_object(self) -> dict[str, str]:
        """eth_call / eth_estimateGas parameter object."""
        return {
            "from": self.account,
            "to": self.contract_address,
            "data": "0x" + self.calldata.hex(),
        }

    def to_transaction(self, estimate: "CostEstimate") -> dict[str, Any]:
        """Unsigned transaction dict (legacy, EIP-155) for signing."""
        return {
            "to": self.contract_address,
            "data": "0x" + self.calldata.hex(),
            "value": 0,
            "nonce": estimate.nonce,
            "gas": estimate.gas_limit,
            "gasPrice": estimate.gas_price,
            "chainId": self.chain_id,
        }


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, Present):
        return Present(_freeze(value.value))
    return value


def build_call(method_name: str, args: Mapping[str, Any], binding: BindingContext) -> CallDescriptor:
    """
    Build an unsigned call descriptor.

    Args:
        method_name: Contract method (must exist in the bound schema)
        args: Arguments by parameter name
        binding: Contract identity, network and caller

    Returns:
        Immutable CallDescriptor

    Raises:
        InvalidArgumentError: Unknown method, missing/unexpected argument,
            or an argument of the wrong shape
    """
    method = binding.schema.method(method_name)

    expected = [p.name for p in method.inputs]
    unexpected = sorted(set(args) - set(expected))
    if unexpected:
        raise InvalidArgumentError(
            f"{method_name}: unexpected argument(s) {unexpected}", field=unexpected[0]
        )

    ordered = []
    for param in method.inputs:
        if param.name not in args:
            raise InvalidArgumentError(f"{method_name}: missing argument {param.name!r}", field=param.name)
        value = args[param.name]
        check_value(param.shape, value, param.name)
        ordered.append(_freeze(value))

    return CallDescriptor(
        method=method,
        args=tuple(ordered),
        calldata=encode_call(method, ordered),
        contract_address=binding.contract_address,
        chain_id=binding.chain_id,
        account=binding.account,
    )
