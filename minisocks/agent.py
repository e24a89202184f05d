from typing import *
import asyncio
import logging
import uuid

from .base_cipher import Cipher
from .exceptions import CipherError, DialFailed, ProtocolError, ResolutionFailed
from .logger_setup import SessionLogger
from .secure_socket import SecureSocket, close_writer


class Agent:
    """
    Listener shared by the local and the remote agent.

    Every accepted connection becomes a Session handled on its own task. A failing session is logged and dropped,
    the listener keeps accepting until `stop()` / `async_close()` is called.
    """
    role = 'agent'

    def __init__(self, cipher: Cipher, host: str = '127.0.0.1', port: int = 7448,
                 timeout: Optional[float] = None, dial_timeout: Optional[float] = 10,
                 after_listen: Optional[Callable[[Tuple[str, int]], Any]] = None):
        self.cipher = cipher
        self.host = host
        self.port = port
        self.timeout = timeout
        self.dial_timeout = dial_timeout
        self.after_listen = after_listen
        self.logger = logging.getLogger(self.__class__.__module__)

        self.asyncio_server: Optional[asyncio.AbstractServer] = None
        self.address: Optional[Tuple[str, int]] = None
        self.sessions: Set['Session'] = set()
        self.sessions_total = 0
        self._stop = asyncio.Event()
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self.asyncio_server is not None and not self._stop.is_set()

    async def start_server(self):
        self._stop.clear()
        self.loop = asyncio.get_running_loop()
        self.asyncio_server = await asyncio.start_server(self.handle_client, self.host, self.port)
        self.address = self.asyncio_server.sockets[0].getsockname()[:2]
        self.logger.info(f"{self.role} listening on {self.address[0]}:{self.address[1]} using cipher {self.cipher}")

        if self.after_listen is not None:
            self.after_listen(self.address)

    async def listen(self):
        await self.start_server()
        try:
            await self._stop.wait()
        finally:
            await self.async_close()

    def start(self):
        try:
            asyncio.run(self.listen())
        except KeyboardInterrupt:
            self.logger.info(f"{self.role} is closed")

    def stop(self):
        # may be called from any thread, the event belongs to the serving loop
        if self.loop is None or self.loop.is_closed():
            self._stop.set()
        else:
            self.loop.call_soon_threadsafe(self._stop.set)

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        session = Session(self, reader, writer)
        if self._stop.is_set():
            await session.close()
            return

        self.sessions.add(session)
        self.sessions_total += 1
        session.logger.debug(f'Accepted connection from {session.addr}')
        try:
            await self.handle_session(session)

        except CipherError as e:
            session.logger.warning(f'Cipher failure, possible wrong key or tampering: {e!r}')
        except ProtocolError as e:
            session.logger.error(f'Protocol error: {e}')
        except (ResolutionFailed, DialFailed) as e:
            session.logger.error(str(e))
        except (ConnectionError, OSError, asyncio.IncompleteReadError) as e:
            session.logger.debug(f'Connection error: {e!r}')
        except Exception:
            session.logger.exception('Unexpected session error')

        finally:
            await session.close()
            self.sessions.discard(session)

    async def handle_session(self, session: 'Session'):
        raise NotImplementedError("Override this method in subclass")

    async def async_close(self):
        self._stop.set()
        if self.asyncio_server is None:
            return

        self.logger.info(f"Shutting down {self.role}...")
        server, self.asyncio_server = self.asyncio_server, None
        server.close()
        for session in list(self.sessions):
            if session.task is not None:
                session.task.cancel()
        await server.wait_closed()
        self.logger.info(f"{self.role} is closed")

    async def __aenter__(self):
        await self.start_server()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.async_close()

    def __str__(self):
        return f'{self.__class__.__name__}(host="{self.host}", port={self.port}, cipher={self.cipher})'


class Session:
    def __init__(self, agent: Agent, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.agent = agent
        self.id = str(uuid.uuid4())
        self.reader = reader
        self.writer = writer
        self.task = asyncio.current_task()

        peer = writer.get_extra_info('peername')
        self.addr = f'{peer[0]}:{peer[1]}' if peer else 'N/A'
        self.logger = SessionLogger(agent.logger, {'conn_id': self.id[:8], 'peer': self.addr})

        self.channel: Optional[SecureSocket] = None
        self.upstream: Optional[asyncio.StreamWriter] = None
        self.closed = False

    async def close(self):
        if self.closed:
            return
        self.closed = True

        if self.channel is not None:
            await self.channel.close()
        if self.upstream is not None:
            await close_writer(self.upstream)
        await close_writer(self.writer)
        self.logger.debug('Session closed')

    def __str__(self):
        return f'{self.__class__.__name__}(id="{self.id}", address="{self.addr}")'
