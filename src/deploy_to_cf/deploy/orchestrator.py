"""Deployment orchestrator: archive in, route out."""

from __future__ import annotations

import shutil
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Mapping, Optional

import structlog
from prometheus_client import Counter, Histogram
from structlog.contextvars import bound_contextvars

from deploy_to_cf.core.config import Settings
from deploy_to_cf.core.exceptions import DeployError, ValidationError
from deploy_to_cf.core.models import DeploymentDescriptor, OAuthToken, SourceRef, Target
from deploy_to_cf.deploy.archive import app_root, extract_tarball
from deploy_to_cf.deploy.cli import CloudFoundryCLI
from deploy_to_cf.deploy.deployer import AppDeployer
from deploy_to_cf.deploy.fetch import fetch_archive
from deploy_to_cf.deploy.manifest import AppManifest, bind_parameters, load_descriptor
from deploy_to_cf.deploy.models import DeploymentResult
from deploy_to_cf.deploy.provisioner import ServiceProvisioner
from deploy_to_cf.deploy.session import TargetSession
from deploy_to_cf.deploy.status import StatusQuery, make_status_query
from deploy_to_cf.source.github import GitHubClient

logger = structlog.get_logger()

DEPLOYMENT_COUNT = Counter(
    "deploy_to_cf_deployments_total",
    "Total deployment runs",
    ["outcome"],
)

DEPLOYMENT_DURATION = Histogram(
    "deploy_to_cf_deployment_duration_seconds",
    "Deployment run duration",
)


class Orchestrator:
    """Runs one deployment end-to-end inside a private temporary directory.

    Stages run strictly in order and the first failure aborts the run. The
    working directory (extracted app plus cf session home) is removed when the
    run ends, whatever the outcome. Concurrent runs share nothing but the
    filesystem, and each gets a fresh directory.
    """

    def __init__(
        self,
        settings: Settings,
        source_client: Optional[GitHubClient] = None,
        cli_factory: Optional[Callable[[Path], CloudFoundryCLI]] = None,
        status_query_factory: Optional[Callable[[CloudFoundryCLI, Target], StatusQuery]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        workdir_root: Optional[Path] = None,
    ):
        self.settings = settings
        self.source_client = source_client or GitHubClient(settings.github_api_base, settings.github_token)
        self.cli_factory = cli_factory or (lambda home: CloudFoundryCLI(home, binary=settings.cf_binary))
        self.status_query_factory = status_query_factory or (
            lambda cli, target: make_status_query(settings.status_query, cli, target.space_guid)
        )
        self.sleep = sleep
        self.workdir_root = workdir_root

    def orchestrate(
        self,
        descriptor: DeploymentDescriptor,
        archive: BinaryIO,
        target: Target,
        token: OAuthToken,
        service_timeout: Optional[float] = None,
        app_name: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> DeploymentResult:
        """Deploy a .tar.gz stream whose descriptor values are already bound."""
        with self._recorded():
            return self._run(
                descriptor,
                target,
                token,
                lambda dest: extract_tarball(archive, dest),
                service_timeout=service_timeout,
                app_name=app_name,
                cancel=cancel,
            )

    def deploy_from_source(
        self,
        source: SourceRef,
        params: Mapping[str, str],
        target: Target,
        token: OAuthToken,
        service_timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> DeploymentResult:
        """Load the descriptor from GitHub, bind params, then deploy the tarball."""
        with self._recorded(source=source.slug):
            descriptor = load_descriptor(self.source_client, source, self.settings.manifest_filename)
            bound = bind_parameters(descriptor, params)
            url = self.source_client.get_archive_link(source.owner, source.repo, source.ref)

            def unpack(dest: Path) -> List[str]:
                return fetch_archive(
                    url,
                    dest,
                    total_timeout_sec=self.settings.archive_timeout_seconds,
                    max_retries=self.settings.archive_max_retries,
                )

            return self._run(
                bound,
                target,
                token,
                unpack,
                service_timeout=service_timeout,
                default_app_name=source.repo,
                cancel=cancel,
            )

    @contextmanager
    def _recorded(self, **context: str) -> Iterator[None]:
        """Bind a deployment id for logging and record the run's outcome."""
        start = time.time()
        outcome = "failed"
        with bound_contextvars(deployment_id=uuid.uuid4().hex, **context):
            try:
                yield
                outcome = "succeeded"
            except DeployError as e:
                outcome = e.stage
                logger.error("Deployment failed", stage=e.stage, error=str(e))
                raise
            finally:
                DEPLOYMENT_COUNT.labels(outcome=outcome).inc()
                DEPLOYMENT_DURATION.observe(time.time() - start)

    def _service_timeout(self, service_timeout: Optional[float]) -> float:
        if service_timeout is None:
            return self.settings.service_timeout
        if service_timeout <= 0:
            raise ValidationError(
                f"service_timeout must be positive, got {service_timeout}",
                missing=["service_timeout"],
                code="invalid_service_timeout",
            )
        return service_timeout

    def _run(
        self,
        descriptor: DeploymentDescriptor,
        target: Target,
        token: OAuthToken,
        unpack: Callable[[Path], List[str]],
        service_timeout: Optional[float] = None,
        app_name: Optional[str] = None,
        default_app_name: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> DeploymentResult:
        missing = descriptor.missing_required()
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}", missing=missing)
        timeout = self._service_timeout(service_timeout)

        start = time.time()
        workdir = Path(tempfile.mkdtemp(prefix="deploy-to-cf-", dir=self.workdir_root))
        logger.info(
            "Deployment started",
            workdir=str(workdir),
            org=target.org_name,
            space=target.space_name,
            services=len(descriptor.services),
        )
        try:
            env_path = workdir / "env"
            app_path = workdir / "app"
            env_path.mkdir(mode=0o700)
            app_path.mkdir(mode=0o755)

            # 1) Unpack source
            names = unpack(app_path)
            root = app_root(app_path, names)

            # 2) Inject supplied values into the app's own manifest
            manifest_path = root / self.settings.manifest_filename
            manifest = AppManifest.load(manifest_path)
            manifest.apply({name: value for name, value in descriptor.values().items() if value})
            manifest.save()
            name = app_name or manifest.app_name or default_app_name or self.settings.default_app_name

            # 3) Isolated cf session
            TargetSession(env_path, self.settings, token, target).write_config()
            cli = self.cli_factory(env_path)

            # 4) Backing services, in declaration order
            provisioner = ServiceProvisioner(
                cli,
                self.status_query_factory(cli, target),
                poll_interval=self.settings.poll_interval,
                sleep=self.sleep,
                cleanup_on_failure=self.settings.cleanup_services_on_failure,
            )
            services = provisioner.provision_all(descriptor.services, timeout, cancel)

            # 5) Push and discover route
            route = AppDeployer(cli).deploy(name, manifest_path, root)

            logger.info("Deployment succeeded", app=name, route=route, duration_seconds=time.time() - start)
            return DeploymentResult(route=route, app_name=name, services=services)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
