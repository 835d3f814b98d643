"""
Sending orders to the proxy and fetching its state.

Every request gets a fresh id and its answer is matched by that id. An answer
with an id that no request in flight on the channel carries is a protocol
violation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from pydantic import ValidationError

from routesync._internal.core.errors import (
    ExecutionFailureError,
    MalformedMessageError,
    NoResponseError,
    ProxyError,
    UnsupportedOrderError,
)
from routesync._internal.core.models.messages import (
    ConfigMessage,
    ConfigMessageAnswer,
    ConfigMessageStatus,
    DumpStateCommand,
    ProxyConfigurationCommand,
)
from routesync._internal.core.models.orders import AnyOrder
from routesync._internal.core.models.state import ConfigState
from routesync._internal.proxy.channel import ChannelFactory, CommandChannel
from routesync._internal.utils.common import generate_id
from routesync._internal.utils.logging import get_logger

logger = get_logger(__name__)

# order type -> (item, verb) for reporting successful orders
ORDER_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "ADD_APPLICATION": ("Application", "added"),
    "REMOVE_APPLICATION": ("Application", "removed"),
    "ADD_CERTIFICATE": ("Certificate", "added"),
    "REMOVE_CERTIFICATE": ("Certificate", "removed"),
    "REPLACE_CERTIFICATE": ("Certificate", "replaced"),
    "ADD_HTTP_FRONT": ("HTTP front", "added"),
    "REMOVE_HTTP_FRONT": ("HTTP front", "removed"),
    "ADD_HTTPS_FRONT": ("HTTPS front", "added"),
    "REMOVE_HTTPS_FRONT": ("HTTPS front", "removed"),
    "ADD_INSTANCE": ("Backend instance", "added"),
    "REMOVE_INSTANCE": ("Backend instance", "removed"),
}


class DispatchStrategy(str, Enum):
    # one channel, one order at a time
    SEQUENTIAL = "sequential"
    # one channel, all orders sent in order before any answer is awaited
    CONCURRENT = "concurrent"


@dataclass
class OrderOutcome:
    order: AnyOrder
    request_id: str
    status: Optional[ConfigMessageStatus] = None
    message: str = ""
    error: Optional[ProxyError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def execute_orders(
    connect: ChannelFactory,
    orders: Sequence[AnyOrder],
    strategy: DispatchStrategy = DispatchStrategy.SEQUENTIAL,
    follow_processing: bool = False,
) -> list[OrderOutcome]:
    """
    Sends all `orders` and returns their outcomes in the same order.
    Failure of one order does not stop the others from being sent.
    Raises ChannelError if the proxy cannot be reached at all.
    """
    async with await connect() as channel:
        if strategy == DispatchStrategy.CONCURRENT:
            return await execute_pipelined(channel, orders, follow_processing)
        outcomes = []
        for order in orders:
            outcomes.append(await execute_order(channel, order, follow_processing))
    return outcomes


async def execute_pipelined(
    channel: CommandChannel, orders: Sequence[AnyOrder], follow_processing: bool = False
) -> list[OrderOutcome]:
    """
    Writes all `orders` to `channel` in order, then collects the answers in whatever
    order the proxy sends them, pairing each one with its request by id.
    """
    outcomes: list[OrderOutcome] = []
    pending: dict[str, OrderOutcome] = {}
    for order in orders:
        request_id = generate_id()
        while request_id in pending:
            request_id = generate_id()
        outcome = OrderOutcome(order=order, request_id=request_id)
        outcomes.append(outcome)
        message = ConfigMessage(id=request_id, command=ProxyConfigurationCommand(data=order))
        try:
            await channel.send(message)
        except ProxyError as e:
            outcome.error = e
        else:
            pending[request_id] = outcome

    resolved: set[str] = set()
    while pending:
        try:
            answer = await channel.receive()
        except MalformedMessageError as e:
            _fail_pending(pending, e)
            break
        if answer is None:
            for outcome in pending.values():
                outcome.error = NoResponseError(outcome.order.type)
            break
        outcome = pending.get(answer.id)
        if outcome is None:
            if answer.id in resolved:
                # final answer for an order already resolved by PROCESSING
                logger.debug("Late answer for request %s: %s", answer.id, answer.status.value)
                continue
            logger.error("Received message with invalid id: %r", answer)
            _fail_pending(pending, MalformedMessageError("Invalid message ID"))
            break
        outcome.status = answer.status
        outcome.message = answer.message
        if follow_processing and answer.status == ConfigMessageStatus.PROCESSING:
            logger.debug("Request %s is processing: %s", answer.id, answer.message)
            continue
        del pending[answer.id]
        resolved.add(answer.id)
        try:
            _check_answer(outcome.order, answer)
        except ProxyError as e:
            outcome.error = e
    return outcomes


def _fail_pending(pending: dict[str, OrderOutcome], error: ProxyError) -> None:
    for outcome in pending.values():
        outcome.error = error
    pending.clear()


async def execute_order(
    channel: CommandChannel, order: AnyOrder, follow_processing: bool = False
) -> OrderOutcome:
    message = ConfigMessage(id=generate_id(), command=ProxyConfigurationCommand(data=order))
    outcome = OrderOutcome(order=order, request_id=message.id)
    try:
        answer = await request(channel, message, order.type, follow_processing)
        outcome.status = answer.status
        outcome.message = answer.message
        _check_answer(order, answer)
    except ProxyError as e:
        outcome.error = e
    return outcome


def _check_answer(order: AnyOrder, answer: ConfigMessageAnswer) -> None:
    if answer.status == ConfigMessageStatus.PROCESSING:
        logger.debug(
            "Order %s (%s) is still processing, not waiting for completion",
            order.type,
            answer.id,
        )
        return
    if answer.status == ConfigMessageStatus.ERROR:
        logger.error("Could not execute order: %s", answer.message)
        raise ExecutionFailureError(answer.message)
    description = ORDER_DESCRIPTIONS.get(order.type)
    # every AnyOrder variant has a description, so this only guards variants added
    # to AnyOrder without one
    if description is None:
        logger.warning("Unsupported order: %s", order)
        raise UnsupportedOrderError(order.type)
    item, verb = description
    logger.info("%s %s: %s.", item, verb, answer.message)


async def request(
    channel: CommandChannel,
    message: ConfigMessage,
    action: str,
    follow_processing: bool = False,
) -> ConfigMessageAnswer:
    """
    Sends `message` and returns the answer with the same id.
    With `follow_processing`, PROCESSING answers are skipped until a final one arrives.
    """
    await channel.send(message)
    while True:
        answer = await channel.receive()
        if answer is None:
            raise NoResponseError(action)
        if answer.id != message.id:
            logger.error("Received message with invalid id: %r", answer)
            raise MalformedMessageError("Invalid message ID")
        if follow_processing and answer.status == ConfigMessageStatus.PROCESSING:
            logger.debug("Request %s is processing: %s", message.id, answer.message)
            continue
        return answer


async def get_config_state(connect: ChannelFactory) -> ConfigState:
    message = ConfigMessage(id=generate_id(), command=DumpStateCommand())
    async with await connect() as channel:
        answer = await request(channel, message, "DUMP_STATE", follow_processing=True)
    if answer.status == ConfigMessageStatus.ERROR:
        raise ExecutionFailureError(answer.message)
    if answer.data is None:
        raise MalformedMessageError("State dump is missing")
    try:
        return ConfigState.model_validate(answer.data)
    except ValidationError as e:
        raise MalformedMessageError(f"Could not decode state dump: {e}") from e
