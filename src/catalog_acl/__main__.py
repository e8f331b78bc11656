"""
Catalog ACL - Entry Point

Command line tools to inspect and validate an access-control configuration.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_config
from .core.auth.principal import Principal
from .core.bootstrap import SecuritySetup, build_security
from .core.catalog import CatalogObject
from .core.rule_store import is_dead_rule
from .core.rules import AccessMode
from .core.secure_tree import SecureTreeNode
from .errors import CatalogSecurityError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


def resolve_resource(setup: SecuritySetup, name: str) -> Optional[CatalogObject]:
    """
    Find a catalog object from its command line name.

    `ws:name` is a layer or layer group of a workspace; a bare name is a
    workspace, then a global layer group, then a global style.
    """
    catalog = setup.catalog
    if ":" in name:
        return catalog.get_layer_by_name(name) or catalog.get_layer_group_by_name(name)
    return (
        catalog.get_workspace_by_name(name)
        or catalog.get_layer_group_by_name(name)
        or catalog.get_style_by_name(name)
    )


def principal_for(username: str) -> Principal:
    if username == ANONYMOUS_USER:
        return Principal.anonymous_principal()
    return Principal.user(username)


def print_tree(node: SecureTreeNode, indent: int = 0) -> None:
    roles = ", ".join(
        f"{mode}={','.join(names) or '-'}"
        for mode, names in node.to_dict()["roles"].items()
    )
    print(f"{'  ' * indent}{node.name}" + (f"  [{roles}]" if roles else ""))
    for child in node.children.values():
        print_tree(child, indent + 1)


def cmd_validate(setup: SecuritySetup) -> int:
    for key, reason in setup.rejected_rules:
        print(f"ERROR   {key}: {reason}")

    dead = [rule for rule in setup.rule_store.get_rules() if is_dead_rule(rule, setup.catalog)]
    for rule in dead:
        print(f"WARNING {rule}: references a resource missing from the catalog")

    print(f"{len(setup.rule_store)} rules, {len(setup.rejected_rules)} rejected, {len(dead)} dead")
    return 1 if setup.rejected_rules else 0


def cmd_check(setup: SecuritySetup, username: str, resource_name: str, mode: str) -> int:
    resource = resolve_resource(setup, resource_name)
    if resource is None:
        print(f"Unknown resource: {resource_name}")
        return 2

    principal = principal_for(username)
    limits = setup.access_manager.get_access_limits(principal, resource)
    access_mode = AccessMode.from_alias(mode)

    print(f"{principal} on {resource_name} (catalog mode {limits.mode.value})")
    print(f"  read:  {'yes' if limits.readable else 'no'}")
    print(f"  write: {'yes' if limits.writable else 'no'}")
    return 0 if limits.allows(access_mode) else 1


def cmd_roles(setup: SecuritySetup, username: str) -> int:
    roles = setup.role_calculator.calculate_roles(username)
    if not roles:
        print(f"{username}: no roles")
        return 0
    for role in roles:
        suffix = f"  {role.properties}" if role.properties else ""
        print(f"{role.name}{suffix}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="catalog-acl",
        description="Catalog access-control tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report malformed and dead rules
  python -m catalog_acl --config catalog_acl.yaml validate

  # Can bob write topp:states?
  python -m catalog_acl check bob topp:states --mode w

  # Effective roles of a user
  python -m catalog_acl roles bob

  # Print the secure tree
  python -m catalog_acl tree
"""
    )

    parser.add_argument(
        '--config', '-c',
        help='Configuration file (default: $CATALOG_ACL_CONFIG or ./catalog_acl.yaml)'
    )

    parser.add_argument(
        '--strict',
        action='store_true',
        help='Fail on the first malformed rule instead of skipping it'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('validate', help='Report malformed and dead rules')

    check_parser = subparsers.add_parser('check', help='Show access limits of a user on a resource')
    check_parser.add_argument('user', help=f'User name ("{ANONYMOUS_USER}" for unauthenticated)')
    check_parser.add_argument('resource', help='Workspace, ws:layer, ws:group, global group or style')
    check_parser.add_argument('--mode', '-m', choices=['r', 'w'], default='r', help='Access mode (default: r)')

    roles_parser = subparsers.add_parser('roles', help='Show the effective roles of a user')
    roles_parser.add_argument('user', help='User name')

    subparsers.add_parser('tree', help='Print the secure tree')

    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
        setup = build_security(config, strict=args.strict)
    except (CatalogSecurityError, FileNotFoundError, KeyError) as e:
        logger.error(f"Cannot load configuration: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        if args.command == 'validate':
            return cmd_validate(setup)
        if args.command == 'check':
            return cmd_check(setup, args.user, args.resource, args.mode)
        if args.command == 'roles':
            return cmd_roles(setup, args.user)
        print_tree(setup.access_manager.tree)
        return 0
    except CatalogSecurityError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2


def run():
    """Entry point for console script"""
    sys.exit(main())


if __name__ == '__main__':
    run()
