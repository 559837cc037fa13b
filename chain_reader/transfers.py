"""ERC20 ``Transfer`` log helpers shared by history queries and the subscription."""
from web3 import Web3

from chain_reader.conversion import address_from_topic, hex_to_int, normalize_address, scale_to_decimal
from chain_reader.entities import TransferDirection, TransferLogEvent
from chain_reader.rpc_models import RpcLog

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"
TRANSFER_TOPIC = Web3.to_hex(Web3.keccak(text=TRANSFER_EVENT_SIGNATURE))


def is_transfer_log(log: RpcLog) -> bool:
    return len(log.topics) >= 3 and log.topics[0].lower() == TRANSFER_TOPIC


def involves_address(log: RpcLog, address: str) -> bool:
    """Whether the transfer's sender or recipient is ``address``."""
    if not is_transfer_log(log):
        return False
    wallet = normalize_address(address)
    return wallet in (address_from_topic(log.topics[1]), address_from_topic(log.topics[2]))


def decode_transfer_log(
    log: RpcLog,
    direction: TransferDirection,
    decimals: int
) -> TransferLogEvent:
    """
    Build a ``TransferLogEvent`` from a raw log.

    Raises
    ------
    FormatError
        If topics or data are malformed
    """
    amount = hex_to_int(log.data)
    return TransferLogEvent(
        transaction_hash=log.transaction_hash,
        block_number=log.block_number,
        log_index=log.log_index,
        from_address=address_from_topic(log.topics[1]),
        to_address=address_from_topic(log.topics[2]),
        amount=amount,
        amount_formatted=scale_to_decimal(amount, decimals),
        direction=direction
    )
