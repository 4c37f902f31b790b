#!/usr/bin/env python3
"""
Game Rotator - daily console/game rotation picker
Keeps at most two active games per console and suggests one (console, game)
pair to play each day, avoiding yesterday's pick and today's rejections.
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, Optional

from colorama import init, Fore, Style

from rotation.errors import (
    CAPACITY_EXCEEDED,
    NO_GAME,
    NO_PLAN,
    NOT_FOUND,
    VALIDATION_ERROR,
    OperationResult,
)
from rotation.repositories import DocumentRepository
from rotation.services import RotationStore

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root rotator logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('rotator')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict = {
    'data_file': '.rotator_data.json',
    'log_level': 'WARNING',
}


class ConfigError(Exception):
    """Raised when the config file exists but cannot be used."""


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from JSON file with environment variable support.

    A missing file means defaults.  Environment variables take precedence
    over config file values:

    - ROTATOR_DATA_FILE overrides data_file
    - ROTATOR_LOG_LEVEL overrides log_level

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    config = dict(DEFAULT_CONFIG)
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Error parsing config file '{config_path}': {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file '{config_path}' must contain a JSON object")
        config.update(data)

    if os.getenv('ROTATOR_DATA_FILE'):
        config['data_file'] = os.getenv('ROTATOR_DATA_FILE')
    if os.getenv('ROTATOR_LOG_LEVEL'):
        config['log_level'] = os.getenv('ROTATOR_LOG_LEVEL')
    return config


# ---------------------------------------------------------------------------
# Front end
# ---------------------------------------------------------------------------

ERROR_MESSAGES = {
    VALIDATION_ERROR: "Missing or invalid input.",
    CAPACITY_EXCEEDED: "That console already has 2 active games. Complete one first.",
    NO_PLAN: "No plan to mark yet. Add consoles and active games first.",
    NO_GAME: "There is no game to complete.",
    NOT_FOUND: "No console or game with that ID.",
}


class RotatorCLI:
    """Terminal front end: collects input, confirms, calls one store operation, renders."""

    def __init__(self, store: RotationStore, assume_yes: bool = False):
        self.store = store
        self.assume_yes = assume_yes

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def report(self, result: OperationResult, success: str = '') -> bool:
        """Print the outcome of *result*; return ``True`` when it succeeded."""
        if result.ok:
            if success:
                print(f"{Fore.GREEN}{success}")
            return True
        print(f"{Fore.RED}{ERROR_MESSAGES.get(result.error, result.error)}")
        if result.message:
            print(f"{Fore.YELLOW}{result.message}")
        return False

    def confirm(self, question: str) -> bool:
        if self.assume_yes:
            return True
        choice = input(f"{Fore.YELLOW}{question} (y/n): {Fore.WHITE}").strip().lower()
        return choice in ('y', 'yes')

    def show_today(self):
        view = self.store.view()
        today = view['today']
        print(f"\n{Fore.GREEN}{'='*60}")
        print(f"{Fore.CYAN}{Style.BRIGHT}🎮 Today: {view['date']}")
        print(f"{Fore.GREEN}{'='*60}")
        if today is None:
            print(f"{Fore.YELLOW}No plan yet 😶")
            print(f"{Fore.WHITE}Add consoles and put 1-2 active games on each one.")
        else:
            print(f"{Fore.YELLOW}Console: {Fore.WHITE}{today['console_name'] or '-'}")
            print(f"{Fore.YELLOW}Game: {Fore.WHITE}{today['game_title'] or '-'}")
            print(f"{Fore.YELLOW}Last played: {Fore.WHITE}{today['last_played'] or 'Never'}")
        print(f"{Fore.GREEN}{'='*60}\n")

    def show_lists(self):
        view = self.store.view()
        print(f"\n{Fore.CYAN}{Style.BRIGHT}Consoles")
        print(f"{Fore.WHITE}{'='*40}")
        if not view['consoles']:
            print(f"{Fore.YELLOW}No consoles.")
        for c in view['consoles']:
            print(f"{Fore.YELLOW}{c['name']} {Fore.WHITE}[{c['id']}] "
                  f"Active: {c['capacity_label']} · Last used: {c['last_used'] or '-'} "
                  f"· weight: {c['weight']:g}")
        print(f"\n{Fore.CYAN}{Style.BRIGHT}Games")
        print(f"{Fore.WHITE}{'='*40}")
        if not view['games']:
            print(f"{Fore.YELLOW}No games.")
        for g in view['games']:
            colour = Fore.GREEN if g['active'] else Fore.WHITE
            label = 'Active' if g['active'] else 'Done'
            print(f"{colour}{g['title']} {Fore.WHITE}[{g['id']}] "
                  f"{g['console_name']} · {label}"
                  + (f" · Last: {g['last_played'][:10]}" if g['last_played'] else ''))
        print()

    # ------------------------------------------------------------------
    # Actions (one store call each)
    # ------------------------------------------------------------------

    def played(self) -> bool:
        return self.report(self.store.mark_played(), "Marked as played today!")

    def swap(self) -> bool:
        ok = self.report(self.store.swap())
        if ok:
            self.show_today()
        return ok

    def complete(self) -> bool:
        return self.report(self.store.complete_today(), "Completed! A slot is free on that console.")

    def reset(self) -> bool:
        return self.report(self.store.reset_today(), "Today's suggestion and skips were reset.")

    def add_console(self, name: str, weight) -> bool:
        result = self.store.add_console(name, weight)
        return self.report(result, f"Added console {result.value['name']}" if result.ok else '')

    def edit_console(self, console_id: str, name: Optional[str], weight) -> bool:
        return self.report(self.store.edit_console(console_id, name=name, weight=weight),
                           "Console updated.")

    def delete_console(self, console_id: str) -> bool:
        if not self.confirm("Delete console? Its games are kept but become unassigned."):
            print(f"{Fore.YELLOW}Cancelled.")
            return True
        return self.report(self.store.delete_console(console_id), "Console deleted.")

    def add_game(self, title: str, console_id: Optional[str], status: str) -> bool:
        result = self.store.add_game(title, console_id, status)
        return self.report(result, f"Added game {result.value['title']}" if result.ok else '')

    def edit_game(self, game_id: str, title: Optional[str], console_id: Optional[str],
                  status: Optional[str]) -> bool:
        return self.report(self.store.edit_game(game_id, title=title, console_id=console_id,
                                                status=status), "Game updated.")

    def delete_game(self, game_id: str) -> bool:
        if not self.confirm("Delete game? Its history goes with it."):
            print(f"{Fore.YELLOW}Cancelled.")
            return True
        return self.report(self.store.delete_game(game_id), "Game deleted.")

    def toggle_game(self, game_id: str) -> bool:
        result = self.store.toggle_game(game_id)
        if result.ok:
            state = 'active' if result.value['status'] == 'active' else 'done'
            return self.report(result, f"{result.value['title']} is now {state}.")
        return self.report(result)

    def export_document(self, filepath: str) -> bool:
        try:
            result = self.store.export_document(filepath)
        except (IOError, OSError) as e:
            print(f"{Fore.RED}Error exporting data: {e}")
            return False
        return self.report(result, f"Data exported to {filepath}")

    def import_document(self, filepath: str) -> bool:
        result = self.store.import_document(filepath)
        if result.ok:
            counts = result.value
            return self.report(result, f"Imported {counts['consoles']} consoles, "
                                       f"{counts['games']} games, {counts['history']} history entries.")
        return self.report(result)

    # ------------------------------------------------------------------
    # Interactive mode
    # ------------------------------------------------------------------

    def interactive_mode(self):
        """Run in interactive mode"""
        while True:
            self.show_today()
            print(f"{Fore.CYAN}{Style.BRIGHT}Game Rotator")
            print(f"{Fore.WHITE}{'='*40}")
            print(f"{Fore.YELLOW}1. {Fore.WHITE}Played today")
            print(f"{Fore.YELLOW}2. {Fore.WHITE}Swap suggestion")
            print(f"{Fore.YELLOW}3. {Fore.WHITE}Complete today's game")
            print(f"{Fore.YELLOW}4. {Fore.WHITE}Reset today")
            print(f"{Fore.YELLOW}5. {Fore.WHITE}List consoles and games")
            print(f"{Fore.YELLOW}6. {Fore.WHITE}Add console")
            print(f"{Fore.YELLOW}7. {Fore.WHITE}Add game")
            print(f"{Fore.YELLOW}8. {Fore.WHITE}Complete/reactivate a game")
            print(f"{Fore.YELLOW}9. {Fore.WHITE}Delete a game")
            print(f"{Fore.YELLOW}0. {Fore.WHITE}Delete a console")
            print(f"{Fore.YELLOW}c. {Fore.WHITE}Edit a console")
            print(f"{Fore.YELLOW}g. {Fore.WHITE}Edit a game")
            print(f"{Fore.YELLOW}q. {Fore.WHITE}Quit")
            print(f"{Fore.WHITE}{'='*40}")

            choice = input(f"\n{Fore.GREEN}Enter your choice: {Fore.WHITE}").strip().lower()

            if choice == 'q':
                print(f"\n{Fore.CYAN}Happy gaming! 🎮")
                break
            elif choice == '1':
                self.played()
            elif choice == '2':
                self.swap()
            elif choice == '3':
                self.complete()
            elif choice == '4':
                self.reset()
            elif choice == '5':
                self.show_lists()
            elif choice == '6':
                name = input(f"{Fore.GREEN}Name: {Fore.WHITE}")
                weight = input(f"{Fore.GREEN}Weight (1 = normal, 2 = more often, 0.5 = less often): {Fore.WHITE}")
                self.add_console(name, weight.strip() or 1)
            elif choice == '7':
                self.show_lists()
                title = input(f"{Fore.GREEN}Title: {Fore.WHITE}")
                console_id = input(f"{Fore.GREEN}Console ID: {Fore.WHITE}").strip()
                done = input(f"{Fore.GREEN}Already completed? (y/n): {Fore.WHITE}").strip().lower()
                self.add_game(title, console_id or None, 'done' if done in ('y', 'yes') else 'active')
            elif choice == '8':
                self.toggle_game(input(f"{Fore.GREEN}Game ID: {Fore.WHITE}").strip())
            elif choice == '9':
                self.delete_game(input(f"{Fore.GREEN}Game ID: {Fore.WHITE}").strip())
            elif choice == '0':
                self.delete_console(input(f"{Fore.GREEN}Console ID: {Fore.WHITE}").strip())
            elif choice == 'c':
                self.show_lists()
                console_id = input(f"{Fore.GREEN}Console ID: {Fore.WHITE}").strip()
                print(f"{Fore.CYAN}Leave a field blank to keep it.")
                name = input(f"{Fore.GREEN}New name: {Fore.WHITE}").strip()
                weight = input(f"{Fore.GREEN}New weight: {Fore.WHITE}").strip()
                self.edit_console(console_id, name or None, weight or None)
            elif choice == 'g':
                self.show_lists()
                game_id = input(f"{Fore.GREEN}Game ID: {Fore.WHITE}").strip()
                print(f"{Fore.CYAN}Leave a field blank to keep it.")
                title = input(f"{Fore.GREEN}New title: {Fore.WHITE}").strip()
                console_id = input(f"{Fore.GREEN}New console ID: {Fore.WHITE}").strip()
                status = input(f"{Fore.GREEN}New status (active/done): {Fore.WHITE}").strip().lower()
                self.edit_game(game_id, title or None, console_id or None, status or None)
            else:
                print(f"{Fore.RED}Invalid choice. Please try again.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Game Rotator - daily console/game rotation picker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 rotator.py                              # Run in interactive mode
  python3 rotator.py --today                      # Show today's suggestion
  python3 rotator.py --swap                       # Reject it and get another one
  python3 rotator.py --played                     # Record today's session
  python3 rotator.py --add-game "Hades" --console c_1234
        """
    )
    parser.add_argument('--config', '-c', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--data-file', metavar='FILE',
                        help='Path to the rotation data file (overrides config)')
    parser.add_argument('--yes', '-y', action='store_true',
                        help='Do not ask for confirmation before deleting')

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument('--today', '-t', action='store_true', help="Show today's suggestion and exit")
    actions.add_argument('--played', '-p', action='store_true', help="Mark today's suggestion as played")
    actions.add_argument('--swap', '-s', action='store_true', help="Skip today's suggestion and pick another")
    actions.add_argument('--complete', action='store_true', help="Mark today's game as completed")
    actions.add_argument('--reset', action='store_true', help="Clear today's suggestion and skips")
    actions.add_argument('--list', '-l', action='store_true', help='List consoles and games')
    actions.add_argument('--add-console', metavar='NAME', help='Add a console')
    actions.add_argument('--edit-console', metavar='ID', help='Edit a console (use --name/--weight)')
    actions.add_argument('--delete-console', metavar='ID', help='Delete a console')
    actions.add_argument('--add-game', metavar='TITLE', help='Add a game (requires --console)')
    actions.add_argument('--edit-game', metavar='ID', help='Edit a game (use --title/--console/--status)')
    actions.add_argument('--delete-game', metavar='ID', help='Delete a game')
    actions.add_argument('--toggle-game', metavar='ID', help='Complete or reactivate a game')
    actions.add_argument('--export', metavar='FILE', help='Export all data to a file')
    actions.add_argument('--import', dest='import_file', metavar='FILE', help='Import data from a file')

    parser.add_argument('--name', help='New console name (with --edit-console)')
    parser.add_argument('--weight', help='Console weight (default: 1)')
    parser.add_argument('--title', help='New game title (with --edit-game)')
    parser.add_argument('--console', metavar='ID', help='Console ID for --add-game/--edit-game')
    parser.add_argument('--status', choices=('active', 'done'), help='Game status for --edit-game')
    parser.add_argument('--done', action='store_true', help='Add the game as already completed')
    return parser


def run(args: argparse.Namespace, store: RotationStore) -> bool:
    """Dispatch the parsed *args* to exactly one CLI action."""
    cli = RotatorCLI(store, assume_yes=args.yes)
    if args.today:
        cli.show_today()
        return True
    if args.played:
        return cli.played()
    if args.swap:
        return cli.swap()
    if args.complete:
        return cli.complete()
    if args.reset:
        return cli.reset()
    if args.list:
        cli.show_lists()
        return True
    if args.add_console is not None:
        return cli.add_console(args.add_console, args.weight if args.weight is not None else 1)
    if args.edit_console is not None:
        return cli.edit_console(args.edit_console, args.name, args.weight)
    if args.delete_console is not None:
        return cli.delete_console(args.delete_console)
    if args.add_game is not None:
        return cli.add_game(args.add_game, args.console, 'done' if args.done else 'active')
    if args.edit_game is not None:
        return cli.edit_game(args.edit_game, args.title, args.console, args.status)
    if args.delete_game is not None:
        return cli.delete_game(args.delete_game)
    if args.toggle_game is not None:
        return cli.toggle_game(args.toggle_game)
    if args.export is not None:
        return cli.export_document(args.export)
    if args.import_file is not None:
        return cli.import_document(args.import_file)
    cli.interactive_mode()
    return True


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"{Fore.RED}{e}")
        sys.exit(1)

    # Re-apply log level from config (allows "log_level": "DEBUG" in config.json)
    setup_logging(config.get('log_level', 'WARNING'))

    data_file = args.data_file or config['data_file']
    try:
        store = RotationStore(DocumentRepository(data_file))
        ok = run(args, store)
    except (IOError, OSError) as e:
        print(f"{Fore.RED}Could not access {data_file}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print(f"\n{Fore.CYAN}Bye! 🎮")
        sys.exit(0)

    if not ok:
        sys.exit(1)


if __name__ == '__main__':
    main()
