"""
CLI main entry point.
"""

import argparse
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..ledger import LedgerError, SQLiteLedger
from ..nlu.amount import format_rupiah, parse_amount_indo
from ..services import AssistantService, SubmitResult
from ..state_store import StateStore

logger = logging.getLogger(__name__)

EXIT_WORDS = frozenset({"exit", "quit", "keluar"})


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pocket-assistant",
        description="Record income, expenses and pocket transfers from Indonesian commands",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    # pocket command
    pocket_parser = subparsers.add_parser("pocket", help="Manage pockets in the local ledger")
    pocket_sub = pocket_parser.add_subparsers(dest="pocket_command", help="Pocket action")
    add_parser = pocket_sub.add_parser("add", help="Create a pocket")
    add_parser.add_argument("name", type=str, help="Pocket display name")
    add_parser.add_argument(
        "--balance",
        type=str,
        default="0",
        help="Opening balance, e.g. 2.500.000 or 3jt (default: 0)",
    )
    pocket_sub.add_parser("list", help="List active pockets with balances")

    # chat command
    chat_parser = subparsers.add_parser("chat", help="Interactive conversation")
    chat_parser.add_argument(
        "--session",
        type=str,
        help="Resume an existing session ID",
    )

    # say command
    say_parser = subparsers.add_parser("say", help="Send one message to a session")
    say_parser.add_argument("text", type=str, help="Message text")
    say_parser.add_argument(
        "--session",
        type=str,
        help="Session ID (default: start a new session)",
    )

    # undo command
    undo_parser = subparsers.add_parser("undo", help="Undo an execution by its undo token")
    undo_parser.add_argument("token", type=str, help="Undo token printed after execution")
    undo_parser.add_argument(
        "--session",
        type=str,
        help="Session ID to log the outcome in",
    )

    # status command
    subparsers.add_parser("status", help="Show assistant status and statistics")

    return parser


def build_service(config: Config) -> AssistantService:
    """Wire stores, ledger and executor from config."""
    store = StateStore(config.state_db_path)
    ledger = SQLiteLedger(config.ledger_db_path)
    return AssistantService(store, ledger, config)


def _print_submit_result(result: SubmitResult) -> None:
    if result.error and not result.turns:
        print(f"❌ {result.error}")
        return

    for turn in result.turns:
        print(f"🤖 {turn.text}")
        options = (turn.payload or {}).get("options")
        if options:
            print(f"   Pilihan: {', '.join(options)}")

    if result.undo_token:
        print(f"   ↩ Undo token: {result.undo_token} (berlaku sampai {result.undo_expires_at})")


def cmd_init_config(config_path: Path) -> int:
    """Write a default config file."""
    if config_path.exists():
        print(f"⚠️  Config already exists: {config_path}")
        return 1

    create_default_config(config_path)
    print(f"✓ Created config: {config_path}")
    return 0


def cmd_pocket_add(config: Config, name: str, balance_text: str) -> int:
    """Create a pocket in the local ledger."""
    balance = parse_amount_indo(balance_text)
    if balance is None:
        if balance_text.strip() not in ("", "0"):
            print(f"❌ Invalid balance: {balance_text}")
            return 1
        balance = 0

    ledger = SQLiteLedger(config.ledger_db_path)
    try:
        pocket = ledger.add_pocket(name, balance)
    except LedgerError as e:
        print(f"❌ {e}")
        return 1

    print(f"✓ Pocket created: {pocket.name} [{pocket.id}] ({format_rupiah(pocket.balance)})")
    return 0


def cmd_pocket_list(config: Config) -> int:
    """List active pockets."""
    ledger = SQLiteLedger(config.ledger_db_path)
    pockets = ledger.list_pocket_records()

    if not pockets:
        print("No pockets yet. Create one with: pocket-assistant pocket add NAME")
        return 0

    print("\n💰 Pockets")
    print("=" * 40)
    for pocket in pockets:
        print(f"  {pocket.name:<24} {format_rupiah(pocket.balance):>14}")
    print("-" * 40)
    print(f"  {'Total':<24} {format_rupiah(ledger.total_balance()):>14}")
    print()
    return 0


def cmd_say(config: Config, text: str, session_id: str | None) -> int:
    """Send one message and print the reply."""
    service = build_service(config)
    result = service.submit_message(session_id, text)
    _print_submit_result(result)
    if result.session_id:
        print(f"   Session: {result.session_id}")
    return 0 if result.success else 1


def cmd_chat(config: Config, session_id: str | None) -> int:
    """Interactive conversation until EOF or an exit word."""
    service = build_service(config)
    if session_id is None:
        session_id = service.start_session().id

    print(f"💬 Session {session_id}")
    print('   Ketik perintah, "undo <token>" untuk membatalkan, atau "exit" untuk keluar.')

    while True:
        try:
            text = input("> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break

        stripped = text.strip()
        if stripped.lower() in EXIT_WORDS:
            break
        if stripped.lower().startswith("undo "):
            outcome = service.perform_undo(session_id, stripped[5:].strip())
            print(f"{'✓' if outcome.success else '❌'} {outcome.message}")
            continue

        _print_submit_result(service.submit_message(session_id, text))

    print("✓ Bye")
    return 0


def cmd_undo(config: Config, token: str, session_id: str | None) -> int:
    """Undo an execution."""
    service = build_service(config)
    outcome = service.perform_undo(session_id, token)

    if outcome.success:
        print(f"✓ {outcome.message}")
        return 0

    print(f"❌ {outcome.message}")
    return 1


def cmd_status(config: Config) -> int:
    """Show assistant status."""
    store = StateStore(config.state_db_path)
    ledger = SQLiteLedger(config.ledger_db_path)
    stats = store.get_stats()

    print("\n📊 Assistant Status")
    print("=" * 40)
    print(f"  Sessions:               {stats['sessions']}")
    print(f"  Chat turns:             {stats['chat_turns']}")
    print(f"  Undoable executions:    {stats['undoable_executions']}")
    for kind, count in sorted(stats["undoable_by_kind"].items()):
        print(f"    - {kind:<20} {count}")
    print(f"  Pockets:                {len(ledger.list_pockets())}")
    print(f"  Ledger transactions:    {ledger.count_transactions()}")
    print(f"  Total balance:          {format_rupiah(ledger.total_balance())}")
    print()

    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    errors = config.validate()
    if errors:
        print("❌ Invalid config:")
        for error in errors:
            print(f"   - {error}")
        return 1

    # Route to command
    if parsed.command == "pocket":
        if parsed.pocket_command == "add":
            return cmd_pocket_add(config, parsed.name, parsed.balance)
        elif parsed.pocket_command == "list":
            return cmd_pocket_list(config)
        parser.print_help()
        return 1
    elif parsed.command == "chat":
        return cmd_chat(config, parsed.session)
    elif parsed.command == "say":
        return cmd_say(config, parsed.text, parsed.session)
    elif parsed.command == "undo":
        return cmd_undo(config, parsed.token, parsed.session)
    elif parsed.command == "status":
        return cmd_status(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
