import argparse
import os
import sys
from pathlib import Path

from logicscan.core.defaults import MODULES
from logicscan.core.diff import DEFAULT_THRESHOLD
from logicscan.core.engine import CHECKERS, Engine
from logicscan.core.extractor import DEFAULT_SENTINEL, Extractor, get_dialect
from logicscan.core.findings import FindingsLedger
from logicscan.core.models import PayloadEntry
from logicscan.core.payloads import DEFAULT_STORE, PayloadRegistry
from logicscan.parsers.request import Request
from logicscan.reporters.console import Log


def expand_charset(text: str) -> str:
    """'a-z0-9_' -> 'abc...xyz0123456789_'. A '-' at either end is literal."""
    out, i = [], 0
    while i < len(text):
        if i + 2 < len(text) and text[i + 1] == "-":
            lo, hi = text[i], text[i + 2]
            if lo > hi:
                raise ValueError(f"bad charset range: {lo}-{hi}")
            out.extend(chr(c) for c in range(ord(lo), ord(hi) + 1))
            i += 3
        else:
            out.append(text[i])
            i += 1
    return "".join(dict.fromkeys(out))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="logicscan",
                                description="Web logic vulnerability scanner")
    p.add_argument("-v", "--verbose", action="count", default=1,
                   help="-v, -vv")
    p.add_argument("--payloads", default=os.environ.get("LOGICSCAN_PAYLOADS"),
                   help=f"Payload catalog (default: $LOGICSCAN_PAYLOADS or {DEFAULT_STORE})")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("scan", help="Scan a raw request file")
    s.add_argument("--request", required=True, help="Raw request file")
    s.add_argument("--request-proto", default="https", choices=["http", "https"])
    s.add_argument("--proxy", help="Proxy (e.g. http://127.0.0.1:8080)")
    s.add_argument("--threshold", type=float, default=DEFAULT_THRESHOLD,
                   help="Relative difference that counts as 'differs' (default 0.15)")
    s.add_argument("--timeout", type=float, default=10)
    s.add_argument("--modules", help=f"Comma-separated module ids ({','.join(CHECKERS)})")
    s.add_argument("--csv", help="Write findings as CSV to this file")
    s.add_argument("--json", help="Write findings as JSON to this file")

    e = sub.add_parser("extract", help="Extract a field through prefix-match filters")
    e.add_argument("--url", required=True)
    e.add_argument("--dialect", default="auto",
                   choices=["auto", "django", "prisma", "odata", "harbor", "ransack"])
    e.add_argument("--field", default="password")
    e.add_argument("--param", help="Filter parameter (dialect default if omitted)")
    e.add_argument("--charset", default="a-z0-9")
    e.add_argument("--sentinel", default=DEFAULT_SENTINEL)
    e.add_argument("--max-length", type=int, default=128)
    e.add_argument("-H", "--header", action="append", default=[],
                   help="Extra header, 'Name: value' (repeatable)")
    e.add_argument("--proxy")
    e.add_argument("--timeout", type=float, default=10)

    pl = sub.add_parser("payloads", help="Manage the payload catalog")
    pa = pl.add_subparsers(dest="action", required=True)
    ls = pa.add_parser("list")
    ls.add_argument("--module", choices=list(MODULES))
    ls.add_argument("--category")
    add = pa.add_parser("add")
    add.add_argument("module", choices=list(MODULES))
    add.add_argument("category")
    add.add_argument("value")
    add.add_argument("--description", default="")
    add.add_argument("--cve", action="append", default=[])
    add.add_argument("--expected", default="", help="Engine markers, 'token=Engine,...'")
    for action in ("remove", "toggle", "duplicate"):
        pa.add_parser(action).add_argument("id")
    imp = pa.add_parser("import")
    imp.add_argument("file")
    exp = pa.add_parser("export")
    exp.add_argument("file")
    exp.add_argument("--module", choices=list(MODULES))
    rst = pa.add_parser("reset")
    rst.add_argument("module", choices=list(MODULES))
    blk = pa.add_parser("bulk", help="One payload per line from a text file")
    blk.add_argument("module", choices=list(MODULES))
    blk.add_argument("file")
    blk.add_argument("--category", default="general")
    return p


def run_scan(args, log: Log, registry: PayloadRegistry) -> int:
    req = Request(args.request)
    req.parse()
    ledger = FindingsLedger(logger=log)
    engine = Engine(proxy=args.proxy, protocol=args.request_proto, logger=log,
                    registry=registry, ledger=ledger, timeout=args.timeout,
                    threshold=args.threshold)
    try:
        if args.modules:
            engine.enable_only(m.strip() for m in args.modules.split(",") if m.strip())
        engine.scan(req.to_probe(args.request_proto))
    finally:
        engine.close()

    log.summary(ledger)
    if args.csv:
        Path(args.csv).write_text(ledger.export_csv(), encoding="utf-8")
        log.ok(f"CSV written to {args.csv}")
    if args.json:
        Path(args.json).write_text(ledger.export_json(), encoding="utf-8")
        log.ok(f"JSON written to {args.json}")
    return 0


def run_extract(args, log: Log, registry: PayloadRegistry) -> int:
    dialect = get_dialect(args.dialect)
    headers = {}
    for h in args.header:
        k, sep, v = h.partition(":")
        if not sep:
            raise ValueError(f"bad header: {h!r}")
        headers[k.strip()] = v.strip()

    engine = Engine(proxy=args.proxy, logger=log, registry=registry, timeout=args.timeout)
    try:
        ex = Extractor(engine.send, dialect, args.url, args.field,
                       charset=expand_charset(args.charset),
                       param=args.param or dialect.default_param,
                       sentinel=args.sentinel, max_length=args.max_length,
                       headers=headers, logger=log)
        fut = ex.start()
        try:
            result = fut.result()
        except KeyboardInterrupt:
            log.warn("Cancelling extraction...")
            ex.cancel()
            result = fut.result()
    finally:
        engine.close()

    if result.error:
        log.fail(result.error)
        return 1
    log.ok(f"{args.field}: {result.display}")
    return 0


def run_payloads(args, log: Log, registry: PayloadRegistry) -> int:
    a = args.action
    if a == "list":
        modules = [args.module] if args.module else list(MODULES)
        for module in modules:
            for entry in registry.all(module):
                if args.category and entry.category != args.category:
                    continue
                state = "on " if entry.enabled else "off"
                print(f"{entry.id}  [{state}] {module}/{entry.category} "
                      f"({entry.added_by}) {entry.value!r}")
        log.info(f"{registry.total_count()} payloads, {registry.enabled_count()} enabled, "
                 f"{registry.user_added_count()} user-added")
    elif a == "add":
        entry = registry.add(PayloadEntry(args.module, args.category, args.value,
                                          description=args.description, cve_refs=list(args.cve),
                                          expected_response=args.expected or None))
        log.ok(f"Added {entry.id}")
    elif a == "remove":
        if not registry.remove(args.id):
            log.fail(f"{args.id}: not found or a built-in payload")
            return 1
        log.ok(f"Removed {args.id}")
    elif a == "toggle":
        state = registry.toggle_enabled(args.id)
        if state is None:
            log.fail(f"{args.id}: not found")
            return 1
        log.ok(f"{args.id} {'enabled' if state else 'disabled'}")
    elif a == "duplicate":
        copy = registry.duplicate(args.id)
        if copy is None:
            log.fail(f"{args.id}: not found")
            return 1
        log.ok(f"Duplicated as {copy.id}")
    elif a == "import":
        log.ok(f"Imported {registry.import_from(args.file)} payloads")
    elif a == "export":
        log.ok(f"Exported {registry.export_to(args.file, args.module)} payloads")
    elif a == "reset":
        registry.reset_to_defaults(args.module)
    elif a == "bulk":
        text = Path(args.file).read_text(encoding="utf-8")
        log.ok(f"Added {registry.bulk_import(args.module, args.category, text)} payloads")
    return 0


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    log = Log(verbose=args.verbose)

    try:
        registry = PayloadRegistry(path=args.payloads, logger=log)
        if args.command == "extract":
            return run_extract(args, log, registry)
        if args.command == "scan":
            return run_scan(args, log, registry)
        return run_payloads(args, log, registry)
    except ValueError as e:
        log.error(str(e))
        return 2
    except OSError as e:
        log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
