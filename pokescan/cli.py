"""
Command-line interface for pokescan.

Commands:
- produce: Attach to the emulator and serve opponent telemetry
- consume: Connect to a producer and print records with verdicts
- decode: Decode a raw 100-byte party block from a file
- profiles: List catch profiles, marking the active one
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading
from pathlib import Path

from .config import AppConfig
from .errors import BindError, ConfigError, DecodeError, PokeScanError

log = logging.getLogger(__name__)


def get_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pokescan",
        description="Live Gen 3 opponent scanner for GBA emulators",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to pokescan TOML config (defaults if omitted)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Produce command
    produce_parser = subparsers.add_parser(
        "produce",
        help="Attach to the emulator and serve telemetry",
    )
    produce_parser.add_argument("--game", type=str, help="Game tag (emerald, firered, ruby, ...)")
    produce_parser.add_argument("--pid", type=int, help="Emulator process id")
    produce_parser.add_argument("--process", type=str, help="Emulator process name")
    produce_parser.add_argument("--port", type=int, help="First port to try")

    # Consume command
    consume_parser = subparsers.add_parser(
        "consume",
        help="Connect to a producer and print records",
    )
    consume_parser.add_argument("--port", type=int, help="Producer port (overrides port file)")
    consume_parser.add_argument("--profile", type=str, help="Activate this profile key")
    consume_parser.add_argument(
        "--json",
        action="store_true",
        help="Print records as JSON lines",
    )

    # Decode command
    decode_parser = subparsers.add_parser(
        "decode",
        help="Decode a raw party block from a file",
    )
    decode_parser.add_argument("file", type=str, help="File with 100 bytes (binary or hex text)")
    decode_parser.add_argument("--game", type=str, default="emerald", help="Game tag")
    decode_parser.add_argument("--profile", type=str, help="Also evaluate against this profile")

    # Profiles command
    profiles_parser = subparsers.add_parser(
        "profiles",
        help="List catch profiles",
    )
    profiles_parser.add_argument("--activate", type=str, help="Make this profile active and save")

    return parser


def _load_config(args: argparse.Namespace) -> AppConfig:
    return AppConfig.load(args.config)


def _setup_logging(args: argparse.Namespace, config: AppConfig) -> None:
    from .debug.log import setup_logging

    level = logging.DEBUG if args.verbose else config.logging.level
    setup_logging(level, config.logging.file or None)


def read_block_file(path: str | Path) -> bytes:
    """Raw bytes, or hex text (whitespace and 0x prefixes ignored)."""
    data = Path(path).read_bytes()
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError:
        return data
    cleaned = "".join(text.replace("0x", " ").split())
    if len(data) != 100 and cleaned and all(c in "0123456789abcdefABCDEF" for c in cleaned):
        try:
            return bytes.fromhex(cleaned)
        except ValueError as e:
            raise DecodeError(f"bad hex in {path}: {e}") from e
    return data


def cmd_produce(args: argparse.Namespace) -> int:
    """Run the producer tick loop against a live emulator."""
    from .memory.bus import EWRAM_BASE, IWRAM_BASE, EmulatedMemory
    from .memory.games import get_adapter
    from .memory.process import ProcessMemory
    from .runtime.producer import Producer
    from .transport.server import TelemetryServer

    config = _load_config(args)
    _setup_logging(args, config)
    mem_cfg = config.memory
    srv_cfg = config.server

    if mem_cfg.ewram_address is None or mem_cfg.iwram_address is None:
        raise ConfigError("memory.ewram_address and memory.iwram_address must be set")

    adapter = get_adapter(
        args.game or mem_cfg.game,
        enemy_party_address=mem_cfg.enemy_party_address,
        battle_flags_address=mem_cfg.battle_flags_address,
    )

    process = ProcessMemory()
    pid = args.pid or mem_cfg.pid
    name = args.process or mem_cfg.process_name
    attached = process.attach(pid) if pid else process.attach_by_name(name)
    if not attached:
        print(f"Could not attach to emulator ({pid or name})")
        return 1

    bus = EmulatedMemory(
        process,
        {EWRAM_BASE: mem_cfg.ewram_address, IWRAM_BASE: mem_cfg.iwram_address},
    )
    server = TelemetryServer(
        srv_cfg.host,
        args.port or srv_cfg.port,
        max_bind_retries=srv_cfg.max_bind_retries,
        min_send_interval=srv_cfg.min_send_interval,
        port_file=srv_cfg.port_file,
    )

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())

    with process, server:
        if not server.start():
            raise BindError(f"Could not bind {srv_cfg.host}:{server.port}")
        print(f"Serving {adapter.name} telemetry on port {server.port}. Press Ctrl+C to stop")
        Producer(adapter, bus, server).run(stop, srv_cfg.tick_rate)

    return 0


def cmd_consume(args: argparse.Namespace) -> int:
    """Connect to a producer and print every record with its verdict."""
    from .criteria.engine import CriteriaEngine
    from .criteria.profiles import ProfileStore
    from .runtime.consumer import Consumer
    from .transport.client import TelemetryClient

    config = _load_config(args)
    _setup_logging(args, config)
    cli_cfg = config.client

    store = ProfileStore.load(config.criteria.profiles_path)
    engine = CriteriaEngine(store)
    if args.profile:
        engine.set_active_profile(args.profile)

    def show(record, verdict) -> None:
        if record is None:
            print("-- no battle --")
        elif args.json:
            print(json.dumps({**record.to_dict(), "verdict": verdict.value}))
        else:
            print(f"[{verdict.value.upper():5}] {record.summary()}")

    def alert(record, verdict) -> None:
        if store.alert_sound_enabled:
            sys.stdout.write("\a")
            sys.stdout.flush()

    async def session() -> None:
        client = TelemetryClient(
            cli_cfg.host,
            args.port or cli_cfg.port,
            port_file=cli_cfg.port_file,
            default_port=cli_cfg.default_port,
            reconnect_delay=cli_cfg.reconnect_delay,
            min_apply_interval=cli_cfg.min_apply_interval,
            max_buffer=cli_cfg.max_buffer,
        )
        consumer = Consumer(client, engine)
        consumer.add_verdict_listener(show)
        consumer.add_alert_listener(alert)
        client.add_state_listener(lambda state: log.info("Connection %s", state.value))
        try:
            await client.run()
        finally:
            await client.close()

    print(f"Active profile: {engine.active_key}. Press Ctrl+C to stop")
    try:
        asyncio.run(session())
    except KeyboardInterrupt:
        print("\nStopped")
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    """Decode one block offline."""
    from .criteria.engine import evaluate
    from .criteria.profiles import ProfileStore
    from .memory.decoder import decode_block

    config = _load_config(args)
    _setup_logging(args, config)

    raw = read_block_file(args.file)
    try:
        record = decode_block(raw, game=args.game.lower())
    except DecodeError as e:
        print(f"Decode failed: {e}")
        return 1

    print(json.dumps(record.to_dict(), indent=2))
    if args.profile:
        store = ProfileStore.load(config.criteria.profiles_path)
        verdict = evaluate(record, store.profiles[args.profile], store.always_alert_shiny)
        print(f"Verdict ({args.profile}): {verdict.value}")
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List (and optionally switch) catch profiles."""
    from .criteria.engine import CriteriaEngine
    from .criteria.profiles import ProfileStore

    config = _load_config(args)
    _setup_logging(args, config)
    path = config.criteria.profiles_path

    engine = CriteriaEngine(ProfileStore.load(path))
    if args.activate:
        engine.set_active_profile(args.activate)
        engine.store.save(path)

    for i, key in enumerate(engine.profile_keys(), start=1):
        profile = engine.store.profiles[key]
        marker = "*" if key == engine.active_key else " "
        print(f"{marker} {i}. {key:<12} {profile.name}")
        rules = profile.model_dump(by_alias=True, exclude_none=True, exclude={"name", "notes"})
        if rules:
            print(f"      {json.dumps(rules)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = get_arg_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "produce": cmd_produce,
        "consume": cmd_consume,
        "decode": cmd_decode,
        "profiles": cmd_profiles,
    }

    cmd_func = commands.get(args.command)
    if cmd_func is None:
        print(f"Unknown command: {args.command}")
        return 1
    try:
        return cmd_func(args)
    except KeyError as e:
        print(f"Error: {e.args[0] if e.args else e}")
        return 1
    except (PokeScanError, OSError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
