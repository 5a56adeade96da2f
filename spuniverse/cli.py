from __future__ import annotations

import argparse
from typing import Optional

from .engine import Engine, EngineConfig
from .server import make_server


def _make_engine(args: argparse.Namespace) -> Engine:
    config = EngineConfig.from_env(storage_dir=args.storage_dir, backup_dir=args.backup_dir)
    return Engine(config, confirm=lambda prompt: input(f"{prompt}\n> "))


def _finish(engine: Engine, args: argparse.Namespace) -> None:
    if args.export_json:
        engine.export_json(args.export_json)


def _cmd_repl(args: argparse.Namespace) -> int:
    engine = _make_engine(args)
    print("SPU started. Type commands to simulate programming ('help' for help, 'exit' to quit).")
    while True:
        try:
            line = input("SPU> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if line.strip() in {"exit", "quit"}:
            break
        output = engine.run_command(line)
        if output:
            print(output)
    _finish(engine, args)
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    engine = _make_engine(args)
    print(engine.run_command(" ".join(args.text)))
    _finish(engine, args)
    return 0


def _cmd_run_file(args: argparse.Namespace) -> int:
    engine = _make_engine(args)
    print(engine.run_command(f"run-file {args.file}"))
    _finish(engine, args)
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    engine = _make_engine(args)
    engine.confirm = None
    server = make_server(engine, args.host, args.port)
    print(f"Web server listening on http://{args.host}:{server.server_address[1]}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        _finish(engine, args)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="spu",
        description="Simulated programming universe: narrate what informal code snippets would do.",
    )
    p.add_argument("--storage-dir", help="Directory holding the bridge registry file")
    p.add_argument("--backup-dir", help="Directory holding bridge backups")
    p.add_argument("--export-json", help="Write an engine snapshot JSON on exit")
    sp = p.add_subparsers(dest="command")

    repl_p = sp.add_parser("repl", help="Interactive shell (default)")
    repl_p.set_defaults(func=_cmd_repl)

    run_p = sp.add_parser("run", help="Run a single engine command")
    run_p.add_argument("text", nargs="+")
    run_p.set_defaults(func=_cmd_run)

    file_p = sp.add_parser("run-file", help="Simulate the code in a file")
    file_p.add_argument("file")
    file_p.set_defaults(func=_cmd_run_file)

    serve_p = sp.add_parser("serve", help="Expose POST /api/run over HTTP")
    serve_p.add_argument("--host", default="127.0.0.1")
    serve_p.add_argument("--port", type=int, default=3000)
    serve_p.set_defaults(func=_cmd_serve)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", _cmd_repl)
    return func(args)


if __name__ == "__main__":
    raise SystemExit(main())
