from fastapi import Request

from mercury.builder import NormalizedMessage
from mercury.channels.dispatcher import Dispatcher, Failed
from mercury.errors import DispatchError


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


async def deliver(dispatcher: Dispatcher, message: NormalizedMessage) -> int:
    """Dispatch ``message``, raising ``DispatchError`` if it could not be delivered."""
    result = await dispatcher.dispatch(message)
    if isinstance(result, Failed):
        raise DispatchError(
            result.cause,
            attempts=result.attempts,
            transient=result.transient,
            timed_out=result.timed_out,
        )
    return result.attempts
