#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Deployment Orchestrator

Runs the deployment pipeline once, in order:

    bootstrap -> await funds -> configure providers -> deploy -> record -> serve

Each stage starts only after the previous one completed or failed. Every
network-bound stage is raced against the run's cancellation token, and all
acquired resources are released on every exit path.
"""

import logging
from typing import Any, Callable, Optional

from contract_deployer.bootstrap import WalletBootstrapper
from contract_deployer.clients.funding import FundingSourceClient
from contract_deployer.config import AppConfig, RetryPolicy
from contract_deployer.deployer import ContractDeployer
from contract_deployer.errors import (
    ConfigurationError,
    DeploymentError,
    InterruptedError,
    PersistenceError,
)
from contract_deployer.lifecycle import EXIT_FAILURE, ShutdownController
from contract_deployer.models import (
    DeploymentManifest,
    DeploymentResult,
    LifecycleState,
    ServiceEndpointSet,
)
from contract_deployer.providers import ProviderConfigurator
from contract_deployer.recorder import DeploymentRecorder, ManifestPolicy
from contract_deployer.utils.logger import get_logger, log_stage_event, mask_secret

# Private state the contract starts with
DEFAULT_INITIAL_PRIVATE_STATE = {"privateCounter": 0}


class DeploymentOrchestrator:
    """
    Sequences the deployment pipeline for a single run.

    Components can be injected; by default they are built from the
    configuration with the run's logger handle.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        bootstrapper: Optional[WalletBootstrapper] = None,
        configurator: Optional[ProviderConfigurator] = None,
        deployer: Optional[ContractDeployer] = None,
        recorder: Optional[DeploymentRecorder] = None,
        controller: Optional[ShutdownController] = None,
        logger: Optional[logging.Logger] = None,
        echo: Callable[[str], None] = print,
        initial_private_state: Any = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            app_config: Application configuration (or None to load from the environment)
            bootstrapper: Wallet bootstrapper override
            configurator: Provider configurator override
            deployer: Contract deployer override
            recorder: Deployment recorder override
            controller: Shutdown controller override
            logger: Run-scoped logger
            echo: Sink for the human-readable run summary
            initial_private_state: Private state to deploy the contract with
        """
        self.config = app_config or AppConfig()
        self.logger = logger or get_logger(__name__)
        self.echo = echo
        self.initial_private_state = (
            initial_private_state if initial_private_state is not None
            else dict(DEFAULT_INITIAL_PRIVATE_STATE)
        )

        self.bootstrapper = bootstrapper or WalletBootstrapper(
            funding_source_factory=self._funding_source_factory,
            policy=self.config.funding_poll,
            logger=self.logger,
        )
        self.configurator = configurator or ProviderConfigurator(
            state_dir=self.config.private_state_dir,
            probe_endpoints=self.config.probe_endpoints,
            policy=self.config.endpoint_probe,
            request_timeout=self.config.request_timeout_secs,
            logger=self.logger,
        )
        self.deployer = deployer or ContractDeployer(
            contract_name=self.config.contract_name,
            private_state_id=self.config.private_state_id,
            policy=RetryPolicy(
                max_attempts=self.config.confirmation.max_attempts,
                initial_delay=self.config.confirmation.initial_delay,
                max_delay=self.config.confirmation.max_delay,
                timeout=self.config.confirmation_timeout_secs,
            ),
            request_timeout=self.config.request_timeout_secs,
            logger=self.logger,
        )
        self.recorder = recorder or DeploymentRecorder(logger=self.logger)
        self.controller = controller or ShutdownController(logger=self.logger)

        self.result: Optional[DeploymentResult] = None
        self.manifest: Optional[DeploymentManifest] = None

    @property
    def state(self) -> LifecycleState:
        return self.controller.tracker.state

    def _funding_source_factory(self) -> FundingSourceClient:
        return FundingSourceClient(
            self.config.resolve_funding_url(),
            timeout=self.config.request_timeout_secs,
        )

    async def run(self, install_signal_handlers: bool = True) -> int:
        """
        Run the pipeline and serve until interrupted.

        Args:
            install_signal_handlers: Register the SIGINT/SIGTERM handler on the loop

        Returns:
            int: 0 after a graceful shutdown from serving, 1 on any failure
        """
        if install_signal_handlers:
            self.controller.install_signal_handlers()

        try:
            return await self._run_pipeline()
        except DeploymentError as e:
            return self._fail(e)
        except Exception as e:
            self.logger.exception(f"Unhandled error during deployment: {str(e)}")
            return self._fail(e)
        finally:
            await self.controller.release()
            if install_signal_handlers:
                self.controller.remove_signal_handlers()

    async def _run_pipeline(self) -> int:
        config = self.config
        controller = self.controller
        tracker = controller.tracker
        token = controller.token

        # Configuration problems surface before any resource is acquired
        errors = config.validate()
        if errors:
            raise ConfigurationError("; ".join(errors), stage=tracker.state.value)
        endpoints = config.endpoints()
        seed = config.resolve_seed()

        tracker.transition(LifecycleState.BUILDING_IDENTITY)
        self.logger.info(f"Building wallet from seed {mask_secret(seed)} on {config.network.value}")
        identity = self.bootstrapper.bootstrap(seed)
        controller.register("wallet connection", identity.connection)

        tracker.transition(LifecycleState.AWAITING_FUNDS)
        identity = await token.guard(
            self.bootstrapper.await_funds(identity, config.min_balance, config.funding_timeout_secs),
            stage=LifecycleState.AWAITING_FUNDS.value,
        )

        tracker.transition(LifecycleState.CONFIGURING_PROVIDERS)
        bundle = await token.guard(
            self.configurator.configure(identity, endpoints),
            stage=LifecycleState.CONFIGURING_PROVIDERS.value,
        )
        controller.register("private state store", bundle.private_state_store)

        tracker.transition(LifecycleState.DEPLOYING)
        self.echo("Deploying contract. This may take 30-60 seconds...")
        try:
            self.result = await token.guard(
                self.deployer.deploy(bundle, self.initial_private_state),
                stage=LifecycleState.DEPLOYING.value,
            )
        except InterruptedError:
            self.logger.warning(
                "Interrupted while deploying; the deploy transaction may have been "
                "submitted, check the network before deploying again"
            )
            raise

        tracker.transition(LifecycleState.RECORDING)
        self.manifest = DeploymentManifest.build(self.result, config.network, endpoints)
        policy = ManifestPolicy.REFUSE if config.refuse_existing_manifest else ManifestPolicy.OVERWRITE
        self.recorder.record(self.manifest, config.manifest_path, policy=policy)

        self._print_success(endpoints)
        log_stage_event(
            self.logger, LifecycleState.RECORDING.value, "complete",
            f"Deployment recorded: {self.result.address}",
        )
        if token.cancelled:
            # Interrupted between stages; serve() shuts down immediately
            self.logger.info("Interrupt already requested, shutting down")
        return await controller.serve()

    def _print_success(self, endpoints: ServiceEndpointSet) -> None:
        self.echo("")
        self.echo("CONTRACT DEPLOYED SUCCESSFULLY")
        self.echo(f"Contract Address: {self.result.address}")
        self.echo(f"Deployment info saved at: {self.config.manifest_path}")
        self.echo(f"Node: {endpoints.node}  Indexer: {endpoints.indexer}")
        self.echo("Press Ctrl+C to stop.")

    def _fail(self, error: Exception) -> int:
        stage = getattr(error, "stage", None) or self.state.value
        kind = getattr(error, "kind", type(error).__name__)
        self.controller.tracker.fail()

        if isinstance(error, PersistenceError) and error.contract_address:
            self.logger.critical(
                f"Contract {error.contract_address} is deployed but the run failed to record it"
            )

        self.logger.error(f"Deployment failed at stage {stage}: {kind}: {error}")
        self.echo(f"Deployment failed at stage '{stage}': {kind}: {error}")
        return EXIT_FAILURE
