"""
Command line entry point for LDAP Lookup.

Runs a single lookup when ``--action`` is given, otherwise presents an
interactive menu over the same lookups.
"""

import sys
import json
import time
import logging
import argparse
from typing import Any, Callable, Optional, List
from dotenv import find_dotenv, load_dotenv

from ldap_lookup.config import load_config, ConfigurationError
from ldap_lookup.ldap_client import LDAPConnectionError
from ldap_lookup.logging_setup import setup_logging
from ldap_lookup.lookup import LdapLookup
from ldap_lookup.responses import DirectoryError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIGURATION = 2
EXIT_CONNECTION = 3
EXIT_DIRECTORY = 4

ACTIONS = ('name', 'exists', 'dept', 'email', 'groups', 'members', 'is-member', 'diagnose')


def run_action(lookup: LdapLookup, action: str, uid: Optional[str], group: Optional[str]) -> Any:
    """
    Run one named lookup.

    Raises:
        ValueError: If the action needs a uid or group that was not given
    """
    needs_uid = action in ('name', 'exists', 'dept', 'email', 'groups', 'is-member')
    needs_group = action in ('members', 'is-member')
    if needs_uid and not uid:
        raise ValueError(f"--uid is required for {action}")
    if needs_group and not group:
        raise ValueError(f"--group is required for {action}")

    if action == 'name':
        return lookup.get_simple_name(uid)
    if action == 'exists':
        return lookup.uid_exist(uid)
    if action == 'dept':
        return lookup.get_dept(uid)
    if action == 'email':
        return lookup.get_email(uid)
    if action == 'groups':
        return lookup.all_groups_for_user(uid)
    if action == 'members':
        return lookup.get_email_distribution_list(group)
    if action == 'is-member':
        return lookup.is_member_of_group(uid, group)
    if action == 'diagnose':
        return lookup.test_connection()
    raise ValueError(f"Unknown action: {action}")


def render(result: Any) -> str:
    if isinstance(result, (dict, list)):
        return json.dumps(result, indent=2, default=str)
    if result is None:
        return 'None'
    return str(result)


class InteractiveSession:
    """Numbered menu over the lookup operations."""

    MENU = """What would you like to do?
=================================
1: set new uid
2: set new group name
+++++++++++++++++++++++++
3: get users full name
33: check if uid exists
4: get users department
5: get users email
55: get all groups a user is a member of
+++++++++++++++++++++++++
6: get group member listing
7: check if uid is member of a group
+++++++++++++++++++++++++
8: what time is it?
99: test LDAP connection (diagnostic)
0: exit
"""

    def __init__(self, lookup: LdapLookup, uid: Optional[str] = None, group: Optional[str] = None,
                 input_func: Callable[[str], str] = input, output=None):
        self.lookup = lookup
        self.uid = uid
        self.group = group
        self.input = input_func
        self.output = output or sys.stdout

    def write(self, text: str = ''):
        self.output.write(text + '\n')

    def result_box(self, answer: Any):
        self.write()
        self.write("Your Results")
        self.write("=" * 54)
        self.write(render(answer))
        self.write("=" * 54)
        self.write(f"current values:\n uid set to=> {self.uid}\n group set to=> {self.group}")
        self.write("-" * 54)
        self.write()

    def handle(self, choice: str) -> bool:
        """
        Handle one menu choice.

        Returns:
            False when the session should end
        """
        choice = choice.strip()
        if choice == '0':
            self.write("you chose exit!")
            return False
        if choice == '1':
            self.uid = self.input("Enter a valid uid: ").strip()
            self.result_box(f"uid is now set to {self.uid}")
            return True
        if choice == '2':
            self.group = self.input("Enter a valid group name: ").strip()
            self.result_box(f"group name is now set to {self.group}")
            return True
        if choice == '8':
            self.result_box(time.asctime())
            return True

        actions = {
            '3': 'name', '33': 'exists', '4': 'dept', '5': 'email',
            '55': 'groups', '6': 'members', '7': 'is-member', '99': 'diagnose',
        }
        action = actions.get(choice)
        if action is None:
            self.write("====> Please type 1, 2, 3, 33, 4, 5, 55, 6, 7, 8, 99 or 0 only")
            return True

        try:
            self.result_box(run_action(self.lookup, action, self.uid, self.group))
        except (ValueError, ConfigurationError, LDAPConnectionError, DirectoryError) as e:
            logger.debug(f"Lookup {action} failed: {e}")
            self.result_box(f"Error: {e}")
        return True

    def run(self):
        while True:
            self.write(self.MENU)
            try:
                choice = self.input("Enter a number: ")
            except EOFError:
                return
            if not self.handle(choice):
                return


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='LDAP user and group lookup')
    parser.add_argument('--config', '-c', help='Path to YAML configuration file')
    parser.add_argument('--uid', '-u', help='User id to look up')
    parser.add_argument('--group', '-g', help='Group name to look up')
    parser.add_argument('--action', '-a', choices=ACTIONS,
                        help='Run a single lookup instead of the interactive menu')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')
    parser.add_argument('--log-dir', help='Directory for rotated log files')
    parser.add_argument('--env-file', help='Dotenv file with LDAP_* variables (default: nearest .env)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)

    setup_logging({'level': args.log_level, 'log_dir': args.log_dir})

    env_file = args.env_file or find_dotenv(usecwd=True)
    if env_file and not load_dotenv(env_file):
        logger.warning(f"No variables loaded from {env_file}")

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION

    lookup = LdapLookup(config)

    if not args.action:
        InteractiveSession(lookup, uid=args.uid, group=args.group).run()
        return EXIT_OK

    try:
        result = run_action(lookup, args.action, args.uid, args.group)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION
    except LDAPConnectionError as e:
        logger.error(f"LDAP connection error: {e}")
        return EXIT_CONNECTION
    except DirectoryError as e:
        logger.error(f"Directory error: {e}")
        return EXIT_DIRECTORY

    print(render(result))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
