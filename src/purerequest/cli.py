"""Command-line interface for purerequest."""

import argparse
import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from . import __version__
from .client import Request
from .errors import RequestError
from .logging_config import setup_logging
from .models.events import ProgressInfo

EXIT_OK = 0
EXIT_HTTP_ERROR = 1
EXIT_REQUEST_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="purerequest",
        description="Send an HTTP(S) request, following redirects and decoding compressed bodies",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print a page
  purerequest https://example.com

  # POST a text body
  purerequest https://httpbin.org/post -X POST -d 'hello'

  # Download with a checksum
  purerequest https://example.com/file.tar.gz -o file.tar.gz --checksum sha256:BASE64DIGEST
        """,
    )
    parser.add_argument("url", help="URL to request")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="NAME: VALUE",
        help="Request header (repeatable)",
    )
    parser.add_argument(
        "-q",
        "--query",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter (repeatable)",
    )
    parser.add_argument("-d", "--data", default=None, help="Text request body")
    parser.add_argument("-o", "--output", default=None, help="Write the body to this file")
    parser.add_argument("--max-redirects", type=int, default=None, help="Maximum redirect hops (default: 20)")
    parser.add_argument("--no-follow", action="store_true", help="Do not follow redirects")
    parser.add_argument("--timeout", type=float, default=None, help="Response timeout in seconds")
    parser.add_argument("--max-size", default=None, help="Maximum body size, e.g. '10mb'")
    parser.add_argument(
        "--checksum",
        default=None,
        metavar="ALGO:DIGEST",
        help="Validate the downloaded body (base64 digest); requires -o",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show redirects (-v), every hop and coding (-vv), aiohttp internals (-vvv)",
    )
    parser.add_argument("--log-file", default=None, help="Also write log records to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _parse_pairs(values: list[str], sep: str, form: str) -> dict[str, list[str]]:
    pairs: dict[str, list[str]] = {}
    for item in values:
        if sep not in item:
            raise ValueError(f"Invalid argument {item!r}, expected '{form}'")
        name, value = item.split(sep, 1)
        pairs.setdefault(name.strip(), []).append(value.strip())
    return pairs


def build_options(args: argparse.Namespace) -> dict:
    """Map parsed arguments onto RequestOptions fields."""
    options: dict = {"url": args.url, "method": args.method}
    headers = _parse_pairs(args.header, ":", "NAME: VALUE")
    if headers:
        options["headers"] = {name: vals[0] if len(vals) == 1 else vals for name, vals in headers.items()}
    query = _parse_pairs(args.query, "=", "KEY=VALUE")
    if query:
        options["query"] = {key: vals[-1] for key, vals in query.items()}
    if args.data is not None:
        options["body"] = args.data
    if args.max_redirects is not None:
        options["max_redirects"] = args.max_redirects
    if args.no_follow:
        options["follow_redirect"] = False
    if args.timeout is not None:
        options["timeout"] = args.timeout
    if args.max_size is not None:
        options["size"] = args.max_size
    return options


def parse_checksum(value: Optional[str]) -> Optional[dict]:
    if value is None:
        return None
    algorithm, sep, expected = value.partition(":")
    if not sep or not expected:
        raise ValueError(f"Invalid checksum {value!r}, expected 'ALGO:DIGEST'")
    return {"algorithm": algorithm, "expected": expected}


async def run_request(args: argparse.Namespace, console: Console) -> int:
    validate = parse_checksum(args.checksum)
    if validate and not args.output:
        raise ValueError("--checksum requires --output")

    req = Request(**build_options(args))
    async with await req.send() as response:
        err = Console(stderr=True)
        if args.verbose:
            for hop in response.redirects:
                err.print(f"[dim]{hop.status} {hop.url} -> {hop.location}[/dim]")
            err.print(f"[bold]{response.status}[/bold] {response.url}")

        if args.output:
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
                console=err,
                transient=True,
            ) as progress:
                task = progress.add_task("Downloading", total=None)

                def on_progress(info: ProgressInfo) -> None:
                    progress.update(task, completed=info.transferred, total=info.total)

                await response.download(args.output, on_progress=on_progress, validate=validate)
            err.print(f"[green]Saved[/green] {args.output}")
        else:
            console.print(await response.text(), markup=False, highlight=False, soft_wrap=True, end="")

        return EXIT_OK if response.ok else EXIT_HTTP_ERROR


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, log_file=args.log_file)

    console = Console()
    try:
        return asyncio.run(run_request(args, console))
    except (RequestError, ValueError) as e:
        Console(stderr=True).print(f"[red]Error:[/red] {e}", markup=True, highlight=False)
        return EXIT_REQUEST_ERROR


if __name__ == "__main__":
    sys.exit(main())
