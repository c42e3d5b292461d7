import sys
import asyncio
import logging
import argparse

from stelnet import Session, SessionConfig, StelnetError
from stelnet.config import DEFAULT_PORT, DEFAULT_PROMPT, DEFAULT_PADDING

log = logging.getLogger("stelnet.main")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="stelnet",
        description="telnet for TLS connections. Yes you can also use: openssl s_client -connect <host>:<port>",
    )
    parser.add_argument("host", nargs="?", help="host to connect to")
    parser.add_argument("port_arg", nargs="?", metavar="port", help="port to connect to")
    parser.add_argument("-k", "--insecure", help="skip TLS verification", action="store_true")
    parser.add_argument("-p", "--port", help="port to connect to", default=DEFAULT_PORT)
    parser.add_argument("-P", "--prompt", help="what to indicate as the prompt", default=DEFAULT_PROMPT)
    parser.add_argument("-X", "--prompt-padding", dest="padding", help="what should be used to pad the prompt",
                        default=DEFAULT_PADDING)
    parser.add_argument("-t", "--toggle", help="unused", action="store_true")
    parser.add_argument("-c", "--certificate", help="show certificate information", action="store_true")
    parser.add_argument("-v", "--verbose", help="verbose mode", action="store_true")
    return parser


async def main(config):
    session = Session(config)
    return await session.run()


def cli(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='[%(asctime)s] %(name)s - %(levelname)s - %(message)s',
    )

    try:
        config = SessionConfig.from_args(args)
        return asyncio.run(main(config), debug=args.verbose)
    except StelnetError as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(cli(sys.argv[1:]))
