from typing import *
import asyncio
import logging

from .exceptions import CipherError
from .secure_socket import SecureSocket, close_writer


ENCODE = 'plain -> secure'
DECODE = 'secure -> plain'
GRACE = 5


async def relay(channel: SecureSocket, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                deadline: Optional[float] = None,
                logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None):
    """
    Forwards bytes between an encrypted channel and a plain connection until one side stops.

    Both directions run as tasks and share `deadline` (event loop time):
    - ENCODE: reader -> channel
    - DECODE: channel -> writer

    The first direction to end (EOF, error or deadline) closes both connections, which also ends the other
    direction; every task is awaited so none outlives the relay.
    """
    logger = logging.getLogger(__name__) if logger is None else logger
    loop = asyncio.get_running_loop()

    tasks = {
        asyncio.create_task(channel.encode_copy(reader), name=f'relay {ENCODE} {channel.addr}'): ENCODE,
        asyncio.create_task(channel.decode_copy(writer), name=f'relay {DECODE} {channel.addr}'): DECODE,
    }
    try:
        timeout = None if deadline is None else max(0.0, deadline - loop.time())
        done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        if not done:
            logger.debug('Relay reached its deadline')
        else:
            logger.debug(f'Relay {", ".join(tasks[task] for task in done)} ended first, closing both sides')
    finally:
        await channel.close()
        await close_writer(writer)
        for task, name in tasks.items():
            await finish(task, name, logger)

    logger.debug(f'Relay finished (sent {channel.bytes_sent}, received {channel.bytes_received} encrypted bytes)')


async def finish(task: asyncio.Task, name: str, logger: Union[logging.Logger, logging.LoggerAdapter]):
    done, pending = await asyncio.wait({task}, timeout=GRACE)
    if pending:
        task.cancel()
        logger.debug(f'Relay {name} did not stop after connections were closed, cancelled')
        return
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        log_relay_error(logger, name, error)


def log_relay_error(logger: Union[logging.Logger, logging.LoggerAdapter], name: str, error: BaseException):
    if isinstance(error, CipherError):
        logger.warning(f'Relay {name} aborted, cipher failure: {error!r}')
    else:
        logger.debug(f'Relay {name} ended: {error!r}')
