class StelnetError(Exception):
    pass


class InvalidArgument(StelnetError):
    pass


class ConnectError(StelnetError):
    pass


class WriteError(StelnetError):
    pass


class ReadError(StelnetError):
    pass


class CloseError(StelnetError):
    pass
