import ssl
import asyncio
import logging

from stelnet.common import ConnectError, WriteError, ReadError, CloseError, InvalidArgument
from stelnet.config import DEFAULT_PORT, parse_port

READ_SIZE = 1024


log = logging.getLogger(__name__)


def create_ssl_context(insecure=False, cafile=None):
    context = ssl.create_default_context(cafile=cafile)
    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class Connection:
    def __init__(self, host, port, reader, writer):
        self.host = host
        self.port = port
        self.reader = reader
        self.writer = writer
        self.closed = False

    def __str__(self):
        return "<Connection({}:{})>".format(self.host, self.port)

    @property
    def ssl_object(self):
        return self.writer.get_extra_info("ssl_object")

    async def write(self, data):
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (OSError, RuntimeError) as e:
            raise WriteError("Failed to write to connection: {}".format(e)) from e
        log.debug("wrote to %s: %s", self, data)

    async def read(self):
        """
        One read of at most READ_SIZE bytes; whatever the transport has not delivered
        yet stays buffered for the next call. Returns b"" at end of stream.
        """
        try:
            data = await self.reader.read(READ_SIZE)
        except OSError as e:
            raise ReadError("Failed to read: {}".format(e)) from e
        log.debug("read from %s: %s", self, data)
        return data

    async def close(self):
        if self.closed:
            return
        self.closed = True

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError as e:
            raise CloseError("Failed to close connection: {}".format(e)) from e
        log.debug("closed %s", self)


async def connect(host, port=DEFAULT_PORT, insecure=False, context=None):
    if not host:
        raise InvalidArgument("No host specified.")
    port = parse_port(port)

    if context is None:
        context = create_ssl_context(insecure=insecure)

    try:
        reader, writer = await asyncio.open_connection(host, port, ssl=context, server_hostname=host)
    except (OSError, asyncio.TimeoutError) as e:
        raise ConnectError("Failed to dial: {}".format(e)) from e

    return Connection(host, port, reader, writer)
