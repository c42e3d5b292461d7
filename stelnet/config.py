from collections import namedtuple

from stelnet.common import InvalidArgument

DEFAULT_PORT = 443
DEFAULT_PROMPT = "$"
DEFAULT_PADDING = " "


def parse_port(s):
    try:
        port = int(s)
    except (TypeError, ValueError):
        raise InvalidArgument("Invalid port specified.")

    if not 0 < port < 65536:
        raise InvalidArgument("Invalid port specified.")
    return port


class SessionConfig(namedtuple("SessionConfig", [
        "host", "port", "insecure", "prompt", "padding", "show_certificate", "toggle"])):
    """
    Options for one session, resolved before connecting and never changed afterwards.
    """

    __slots__ = ()

    def __new__(cls, host, port=DEFAULT_PORT, insecure=False, prompt=DEFAULT_PROMPT,
                padding=DEFAULT_PADDING, show_certificate=False, toggle=False):
        if not host:
            raise InvalidArgument("No host specified.")
        return super().__new__(cls, host, parse_port(port), insecure, prompt, padding, show_certificate, toggle)

    @classmethod
    def from_args(cls, args):
        # a positional port wins over --port
        port = args.port_arg if args.port_arg is not None else args.port
        return cls(
            args.host,
            port=port,
            insecure=args.insecure,
            prompt=args.prompt,
            padding=args.padding,
            show_certificate=args.certificate,
            toggle=args.toggle,
        )

    @property
    def full_prompt(self):
        return self.prompt + self.padding
