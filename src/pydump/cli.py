"""pydump - command line entry point."""

import argparse
import logging
import sys
from collections.abc import Sequence

from pydump.config import LOG_FORMATS, LOG_LEVELS, PydumpConfig, load_config
from pydump.dump import dump
from pydump.errors import ConfigError, DumpError
from pydump.logging_config import configure_logging
from pydump.models import Domain, DumpRequest, OutputFormat, SelectionRequest
from pydump.monitor import record_samples
from pydump.registry import DomainRegistry, get_registry
from pydump.store import StoreSource, StoreWriter, parse_time

logger = logging.getLogger(__name__)

DOMAIN_HELP = {
    Domain.SYSTEM: "Dump system stats",
    Domain.DISK: "Dump disk stats",
    Domain.PROCESS: "Dump process stats",
    Domain.CGROUP: "Dump cgroup stats",
    Domain.IFACE: "Dump the link layer iface stats",
    Domain.NETWORK: "Dump the network layer stats including ip and icmp",
    Domain.TRANSPORT: "Dump the transport layer stats including tcp and udp",
}


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{text}'") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return value


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got '{text}'") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return value


def describe_fields(registry: DomainRegistry) -> str:
    """Help text listing a domain's fields and aggregated fields."""
    lines = ["available fields:", "  " + ", ".join(spec.name for spec in registry.fields), ""]
    lines.append("aggregated fields:")
    for group in registry.groups:
        line = f"  {group.name}: {', '.join(group.members)}"
        if group.detail_members:
            line += f" (--detail adds {', '.join(group.detail_members)})"
        lines.append(line)
    lines.append("")
    lines.append(
        f"--default shows {', '.join(registry.defaults)}. To display everything, use --everything."
    )
    return "\n".join(lines)


def _add_dump_options(parser: argparse.ArgumentParser, registry: DomainRegistry) -> None:
    parser.add_argument(
        "-f", "--fields", nargs="+", action="extend", metavar="NAME",
        help="Select which fields or groups to display and in what order.",
    )
    parser.add_argument(
        "--default", action="store_true",
        help="Show the default fields. Overrides --fields.",
    )
    parser.add_argument(
        "--everything", action="store_true",
        help="Show all fields. Overrides --fields and --default.",
    )
    parser.add_argument(
        "-d", "--detail", action="store_true",
        help="Expand groups with their detail fields.",
    )
    parser.add_argument("-b", "--begin", required=True, help="Begin time, e.g. '08:30:00' or '10m ago'.")
    parser.add_argument("-e", "--end", help="End time, same format as --begin. Defaults to now.")
    parser.add_argument(
        "-F", "--filter", dest="filter_pattern", metavar="PATTERN",
        help="Keep rows whose --select field matches this regex.",
    )
    parser.add_argument("--sort", action="store_true", help="Sort (lower to higher) by the --select field.")
    parser.add_argument("--rsort", action="store_true", help="Sort (higher to lower) by the --select field.")
    parser.add_argument(
        "--top", type=_non_negative_int, default=0, metavar="N",
        help="Show only the first N rows of each time slice.",
    )
    parser.add_argument(
        "--repeat-title", type=_non_negative_int, metavar="N",
        help="Repeat the title every N rows (raw and csv output).",
    )
    parser.add_argument(
        "-O", "--output-format", choices=[f.value for f in OutputFormat],
        help="Output format. Defaults to raw.",
    )
    parser.add_argument("-o", "--output", help="Output destination, defaults to stdout.")
    parser.add_argument(
        "--disable-title", action="store_true", help="Disable the title in raw or csv output.",
    )
    if registry.supports_select:
        parser.add_argument(
            "-s", "--select", metavar="FIELD",
            help="Field used by --filter, --sort, --rsort and --top.",
        )
    parser.add_argument("--store", help="Sample store to read from.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="pydump", description="Dump recorded system metrics."
    )
    parser.add_argument("--config", help="JSON configuration file.")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS)
    parser.add_argument("--log-format", choices=LOG_FORMATS)
    commands = parser.add_subparsers(dest="command", required=True)

    dump_parser = commands.add_parser("dump", help="Dump recorded samples of one domain.")
    domains = dump_parser.add_subparsers(dest="domain", required=True)
    for domain in Domain:
        registry = get_registry(domain)
        sub = domains.add_parser(
            domain.value,
            help=DOMAIN_HELP[domain],
            description=DOMAIN_HELP[domain],
            epilog=describe_fields(registry),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        _add_dump_options(sub, registry)

    record_parser = commands.add_parser("record", help="Record samples into the store.")
    record_parser.add_argument(
        "--interval", type=_positive_float, help="Seconds between samples."
    )
    record_parser.add_argument(
        "--count", type=_non_negative_int,
        help="Stop after N samples. Runs until interrupted when omitted or 0.",
    )
    record_parser.add_argument("--store", help="Sample store to append to.")
    return parser


def build_request(args: argparse.Namespace, config: PydumpConfig) -> DumpRequest:
    """Turn parsed dump arguments into a DumpRequest."""
    default = args.default or not (args.fields or args.everything)
    selection = SelectionRequest(
        fields=tuple(args.fields) if args.fields else None,
        default=default,
        everything=args.everything,
        detail=args.detail,
    )
    begin = parse_time(args.begin)
    end = parse_time(args.end) if args.end else parse_time("now")
    output_format = (
        OutputFormat(args.output_format) if args.output_format else config.output_format
    )
    return DumpRequest(
        domain=Domain(args.domain),
        selection=selection,
        begin=begin,
        end=end,
        select=getattr(args, "select", None),
        filter_pattern=args.filter_pattern,
        sort=args.sort,
        rsort=args.rsort,
        top=args.top,
        output_format=output_format,
        repeat_title=args.repeat_title,
        disable_title=args.disable_title,
        output=args.output,
    )


def _run_dump(args: argparse.Namespace, config: PydumpConfig) -> int:
    request = build_request(args, config)
    source = StoreSource(args.store or config.store_path)
    dump(request, source)
    return 0


def _run_record(args: argparse.Namespace, config: PydumpConfig) -> int:
    interval = args.interval or config.record_interval
    with StoreWriter(args.store or config.store_path) as writer:
        logger.info("Recording to %s every %.1fs", writer.path, interval)
        record_samples(writer, interval, count=args.count or None)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for pydump. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"pydump: {e}", file=sys.stderr)
        return 1
    configure_logging(args.log_level or config.log_level, args.log_format or config.log_format)

    try:
        if args.command == "record":
            return _run_record(args, config)
        return _run_dump(args, config)
    except DumpError as e:
        logger.debug("Run aborted", exc_info=True)
        print(f"pydump: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
