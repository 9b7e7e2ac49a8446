#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main entry point for the Contract Deployer.

This module sets up logging and provides the command-line interface for
deploying the contract and inspecting the recorded deployment.
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from contract_deployer.config import AppConfig
from contract_deployer.errors import PersistenceError
from contract_deployer.lifecycle import EXIT_FAILURE, EXIT_SUCCESS
from contract_deployer.models import Network
from contract_deployer.orchestration.orchestrator import DeploymentOrchestrator
from contract_deployer.recorder import DeploymentRecorder
from contract_deployer.utils.logger import configure_run_logging, run_log_path


def setup_argparse() -> argparse.ArgumentParser:
    """
    Set up command-line argument parsing.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Contract Deployer",
        epilog="Deploys the contract once and records its address in a deployment manifest.",
    )

    parser.add_argument(
        "command",
        nargs="?",
        default="deploy",
        choices=["deploy", "show", "env"],
        help="Command to execute (default: deploy)",
    )

    # Deploy options
    parser.add_argument(
        "--network",
        type=str,
        choices=[network.value for network in Network],
        help="Network to deploy to (default: DEPLOY_NETWORK or local)",
    )
    parser.add_argument(
        "--seed",
        type=str,
        help="Wallet seed, 64 hex characters (default: WALLET_SEED, genesis seed on local)",
    )
    parser.add_argument(
        "--min-balance",
        type=int,
        help="Balance required before deploying",
    )
    parser.add_argument(
        "--funding-timeout",
        type=float,
        help="Seconds to wait for the wallet to be funded",
    )
    parser.add_argument(
        "--no-probe",
        action="store_true",
        help="Skip endpoint reachability probes",
    )
    parser.add_argument(
        "--refuse-existing",
        action="store_true",
        help="Fail instead of overwriting an existing manifest",
    )

    # Manifest options
    parser.add_argument(
        "--manifest",
        type=str,
        help="Deployment manifest path (default: MANIFEST_PATH or ./deployment.json)",
    )

    # Logging options
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Format logs as JSON",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply command-line overrides to the configuration."""
    if args.network:
        config.network = Network(args.network)
    if args.seed:
        config.wallet_seed = args.seed
    if args.min_balance is not None:
        config.min_balance = args.min_balance
    if args.funding_timeout is not None:
        config.funding_timeout_secs = args.funding_timeout
    if args.no_probe:
        config.probe_endpoints = False
    if args.refuse_existing:
        config.refuse_existing_manifest = True
    if args.manifest:
        config.manifest_path = Path(args.manifest)
    if args.log_level:
        config.log_level = getattr(logging, args.log_level)
    if args.json_logs:
        config.json_logs = True
    return config


def run_deploy(config: AppConfig) -> int:
    """
    Deploy the contract and serve until interrupted.

    Returns:
        int: Exit code
    """
    log_path = run_log_path(config.log_dir)
    logger = configure_run_logging(log_path, level=config.log_level, json_logs=config.json_logs)
    logger.info(f"Contract deployment starting on {config.network.value} network")
    logger.info(f"Run log: {log_path}")

    orchestrator = DeploymentOrchestrator(app_config=config, logger=logger)
    return asyncio.run(orchestrator.run())


def show_manifest(config: AppConfig) -> int:
    """Print the recorded deployment manifest."""
    try:
        manifest = DeploymentRecorder().load(config.manifest_path)
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if manifest is None:
        print(f"No deployment manifest at {config.manifest_path}", file=sys.stderr)
        return EXIT_FAILURE

    print(manifest.to_json())
    return EXIT_SUCCESS


def print_env(config: AppConfig) -> int:
    """Print the frontend environment variable for the deployed contract."""
    try:
        manifest = DeploymentRecorder().load(config.manifest_path)
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if manifest is None:
        print(f"No deployment manifest at {config.manifest_path}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"VITE_CONTRACT_ADDRESS={manifest.resource_address}")
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    parser = setup_argparse()
    args = parser.parse_args(argv)

    if args.version:
        import contract_deployer
        print(f"Contract Deployer v{contract_deployer.__version__}")
        return EXIT_SUCCESS

    config = apply_overrides(AppConfig(), args)

    if args.command == "show":
        return show_manifest(config)
    if args.command == "env":
        return print_env(config)
    return run_deploy(config)


if __name__ == "__main__":
    sys.exit(main())
