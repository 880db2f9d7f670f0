#!/usr/bin/env python3
"""
credtrap - capture credentials from SSH, SNMP, LDAP and LDAPS clients
"""

import argparse
import sys

from colorama import Fore, Style, init

from utils import VERSION
from utils.config_manager import apply_args, load_config, save_config
from utils.errors import ConfigurationError
from utils.log_manager import setup_logging
from utils.session import EXIT_CONFIG_ERROR, Session


def print_banner():
    """Print the honeypot banner to stderr so stdout stays machine readable"""
    banner = f"""
{Fore.CYAN}+------------------------------------------------+
|  {Fore.YELLOW}credtrap {VERSION}{Fore.CYAN}                                  |
|  {Fore.GREEN}credential capture for ssh, snmp, ldap, ldaps{Fore.CYAN} |
+------------------------------------------------+{Style.RESET_ALL}
"""
    print(banner, file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credtrap",
        description="Capture credentials submitted to emulated network services",
    )
    parser.add_argument("outputs", nargs="*",
                        help="Output destinations: '-' for console, http(s) URL for a webhook, otherwise a file")
    parser.add_argument("-c", "--config", help="Path to a JSON configuration file")
    parser.add_argument("--save-config", help="Write the effective configuration to this path and exit")
    parser.add_argument("-p", "--protocols", help="Comma separated protocols to enable (ssh,snmp,ldap,ldaps)")
    parser.add_argument("-b", "--bind-host", dest="bind_host", help="Address to bind listeners to")
    parser.add_argument("--ssh-ports", dest="ssh_ports", help="SSH ports, e.g. 22,2222")
    parser.add_argument("--ssh-host-key", dest="ssh_host_key", help="SSH host key file (generated if not set)")
    parser.add_argument("--snmp-ports", dest="snmp_ports", help="SNMP ports")
    parser.add_argument("--ldap-ports", dest="ldap_ports", help="LDAP ports")
    parser.add_argument("--ldaps-ports", dest="ldaps_ports", help="LDAPS ports")
    parser.add_argument("--tls-cert", dest="tls_cert", help="TLS certificate file (PEM, may include the key)")
    parser.add_argument("--tls-key", dest="tls_key", help="TLS private key file")
    parser.add_argument("--tls-name", dest="tls_name", help="Server name for generated certificates")
    parser.add_argument("--tls-org", dest="tls_org", help="Organization for generated certificates")
    parser.add_argument("--log-file", dest="log_file", help="Also write log output to this file")
    parser.add_argument("-I", "--ignore-failures", action="store_true",
                        help="Keep running when individual listeners fail to start")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase output verbosity")
    parser.add_argument("--no-banner", action="store_true", help="Do not print the startup banner")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def main(argv=None) -> int:
    # Initialize colorama for colored terminal output
    init(autoreset=True)

    args = build_parser().parse_args(argv)

    try:
        config = apply_args(load_config(args.config), args)

        if args.save_config:
            return 0 if save_config(config, args.save_config) else EXIT_CONFIG_ERROR

        if not args.no_banner:
            print_banner()

        logger = setup_logging(config)
    except ConfigurationError as e:
        print(f"{Fore.RED}{e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info(f"credtrap {VERSION} starting")

    session = Session(config)
    session.start_signal_watcher()

    try:
        return session.run()
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
