import sys
import enum
import signal
import asyncio
import logging
import threading

from stelnet.cert import show_certificate
from stelnet.common import CloseError, ReadError, WriteError
from stelnet.net import connect

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

log = logging.getLogger(__name__)


class State(enum.Enum):
    AWAITING_INPUT = "awaiting-input"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting-response"
    PRINTING = "printing"
    CLOSED_EOF = "closed-eof"
    CLOSED_FATAL = "closed-fatal"


class LineReader:
    """
    Feeds lines from a blocking binary stream into the event loop.

    The stream is read on a daemon thread so that a pending read never holds up the
    event loop or process exit. `readline()` returns b"" once the stream is exhausted.
    """

    def __init__(self, stream=None):
        self.stream = stream
        self.lines = asyncio.Queue()
        self.thread = None

    def start(self):
        if self.thread is not None:
            return
        if self.stream is None:
            self.stream = sys.stdin.buffer.raw
        loop = asyncio.get_running_loop()
        self.thread = threading.Thread(target=self._reader, args=(loop,), name="stelnet-stdin", daemon=True)
        self.thread.start()

    def _reader(self, loop):
        while True:
            line = self.stream.readline()
            try:
                loop.call_soon_threadsafe(self.lines.put_nowait, line)
            except RuntimeError:
                # event loop already closed
                return
            if not line:
                return

    async def readline(self):
        self.start()
        return await self.lines.get()


class Session:
    def __init__(self, config, stdin=None, stdout=None, context=None):
        self.config = config
        self.input = LineReader(stdin)
        self.stdout = stdout if stdout is not None else sys.stdout
        self.context = context

        self.connection = None
        self.state = None
        self.interrupted = asyncio.Event()

    def interrupt(self):
        self.interrupted.set()

    def install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in INTERRUPT_SIGNALS:
            loop.add_signal_handler(sig, self.interrupt)

    def remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in INTERRUPT_SIGNALS:
            loop.remove_signal_handler(sig)

    async def run(self, handle_signals=True):
        """
        Connect and run the interactive loop until EOF or an interrupt. Returns the exit
        status; fatal errors propagate as StelnetError.
        """
        if handle_signals:
            self.install_signal_handlers()

        watcher = asyncio.create_task(self.watch_interrupt())
        main = asyncio.create_task(self.main())
        try:
            done, _ = await asyncio.wait([watcher, main], return_when=asyncio.FIRST_COMPLETED)

            if main in done:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)
                main.result()
                return 0

            # the interrupt won, stop the loop before touching the connection
            main.cancel()
            await asyncio.gather(main, return_exceptions=True)
            await watcher
            return 0
        finally:
            if handle_signals:
                self.remove_signal_handlers()

    async def main(self):
        config = self.config
        log.info("Trying %s...", config.host)
        self.connection = await connect(config.host, config.port, insecure=config.insecure, context=self.context)

        if config.show_certificate:
            show_certificate(self.connection)

        log.info("Connected to: %s(%s)", config.host, config.port)
        log.info("Escape character is '^c'.")

        await self.interact()

    async def watch_interrupt(self):
        await self.interrupted.wait()
        log.info("Received an interrupt, closing connection...")

        if self.connection is not None:
            await self.connection.close()

    async def interact(self):
        connection = self.connection
        while True:
            self.state = State.AWAITING_INPUT
            self.prompt()
            line = await self.input.readline()
            if not line:
                log.info("End of input, closing connection...")
                break

            self.state = State.SENDING
            try:
                await connection.write(line)
            except WriteError:
                self.state = State.CLOSED_FATAL
                raise

            self.state = State.AWAITING_RESPONSE
            try:
                data = await connection.read()
            except ReadError:
                self.state = State.CLOSED_FATAL
                raise

            if not data:
                log.info("Received EOF, closing connection...")
                break

            self.state = State.PRINTING
            log.info("Received: %s", data.decode(errors="replace"))

        self.state = State.CLOSED_EOF
        try:
            await connection.close()
        except CloseError as e:
            log.debug("ignoring close failure after EOF: %s", e)

    def prompt(self):
        self.stdout.write(self.config.full_prompt)
        self.stdout.flush()
