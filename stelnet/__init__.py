from stelnet.common import (
    StelnetError, InvalidArgument, ConnectError, WriteError, ReadError, CloseError,
)
from stelnet.config import SessionConfig
from stelnet.net import Connection, connect, create_ssl_context
from stelnet.cert import describe, show_certificate
from stelnet.session import Session, State
