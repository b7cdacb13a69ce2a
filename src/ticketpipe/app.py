"""Application composition: wires configuration, storage, pipelines and services."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.adapters.crypto import Ed25519Signer, verify_ed25519_signature
from ticketpipe.adapters.providers import build_provider_adapter
from ticketpipe.adapters.scheduler import PipelineScheduler
from ticketpipe.adapters.sqlalchemy import (
    SqlAlchemyArtifactStore,
    SqlAlchemyCacheUnitOfWork,
    SqlAlchemyTicketUnitOfWork,
    startup,
)
from ticketpipe.adapters.sqlalchemy.unit_of_work import is_started
from ticketpipe.domain.artifact_cache import ArtifactCache, MemoryCacheStore, VerificationCache
from ticketpipe.domain.checkin import CheckinService
from ticketpipe.domain.clock import utcnow
from ticketpipe.domain.credentials import CredentialVerifier
from ticketpipe.domain.feeds import FeedHost, feeds_for_pipeline
from ticketpipe.domain.identity import IdentityDirectory
from ticketpipe.domain.issuance import TicketIssuer
from ticketpipe.domain.pipeline import Pipeline
from ticketpipe.domain.ports.unit_of_work import CacheUnitOfWork, TicketUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ticketpipe.config import IssuanceConfig
    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.identity import LinkResult
    from ticketpipe.domain.model import PipelineDefinition, SerializedArtifact
    from ticketpipe.domain.ports.cache import CacheStore
    from ticketpipe.domain.ports.fetching import ProviderAdapter
    from ticketpipe.domain.sync import SyncResult

TicketUnitOfWorkFactory = Callable[[], TicketUnitOfWork]
CacheUnitOfWorkFactory = Callable[[], CacheUnitOfWork]
AdapterFactory = Callable[["PipelineDefinition"], "ProviderAdapter"]

log = getLogger(__name__)


class UnknownPipelineError(KeyError):
    """Raised when an operation names a pipeline that is not configured."""


@dataclass(slots=True, kw_only=True)
class IssuanceApplication:
    """Everything one server process hosts, built once by :func:`build_application`."""

    config: IssuanceConfig
    signer: Ed25519Signer
    issuer: TicketIssuer
    artifact_cache: ArtifactCache
    verifier: CredentialVerifier
    identities: IdentityDirectory
    feed_host: FeedHost
    checkins: CheckinService
    scheduler: PipelineScheduler
    pipelines: dict[str, Pipeline] = field(default_factory=dict)

    def start(self, *, schedule: bool = True) -> None:
        for pipeline in self.pipelines.values():
            pipeline.start()
            if schedule:
                self.scheduler.schedule(pipeline)
        if schedule:
            self.scheduler.start()
        log.info("Serving %d pipelines", len(self.pipelines))

    def stop(self) -> None:
        self.scheduler.shutdown()
        for pipeline in self.pipelines.values():
            pipeline.stop()

    def pipeline(self, pipeline_id: str) -> Pipeline:
        try:
            return self.pipelines[pipeline_id]
        except KeyError:
            raise UnknownPipelineError(pipeline_id) from None

    def sync(self, pipeline_id: str) -> SyncResult | None:
        return self.pipeline(pipeline_id).sync()

    def sync_all(self) -> list[SyncResult]:
        """Run one cycle of every pipeline in turn; skipped cycles are omitted."""

        results: list[SyncResult] = []
        for pipeline in self.pipelines.values():
            result = pipeline.sync()
            if result is not None:
                results.append(result)
        return results

    def link_identity(self, *, commitment: str, email: str) -> LinkResult:
        return self.identities.link(commitment=commitment, email=email)

    def issue_tickets(
        self, *, email: str, commitment: str
    ) -> list[tuple[str, SerializedArtifact]]:
        issued: list[tuple[str, SerializedArtifact]] = []
        for pipeline in self.pipelines.values():
            issued.extend(pipeline.issue_tickets(email=email, commitment=commitment))
        return issued


def build_application(
    config: IssuanceConfig,
    definitions: Sequence[PipelineDefinition],
    *,
    database_uri: str | None = None,
    adapter_factory: AdapterFactory = build_provider_adapter,
    ticket_uow_factory: TicketUnitOfWorkFactory = SqlAlchemyTicketUnitOfWork,
    cache_uow_factory: CacheUnitOfWorkFactory = SqlAlchemyCacheUnitOfWork,
    artifact_store: CacheStore[SerializedArtifact] | None = None,
    scheduler: PipelineScheduler | None = None,
    clock: Clock = utcnow,
) -> IssuanceApplication:
    """Construct the shared caches, services and one pipeline per definition."""

    if not is_started():
        startup(database_uri=database_uri)

    signer = Ed25519Signer.from_hex(config.eddsa_private_key)
    store = artifact_store or SqlAlchemyArtifactStore(
        cache_uow_factory,
        max_entries=config.artifact_cache_max_entries,
        ttl_seconds=config.artifact_cache_ttl_seconds,
        clock=clock,
    )
    artifact_cache = ArtifactCache(store)
    issuer = TicketIssuer(signer, artifact_cache, clock=clock)
    verifier = CredentialVerifier(
        verify_ed25519_signature,
        VerificationCache(MemoryCacheStore(max_entries=config.verification_cache_max_entries)),
        max_age=timedelta(seconds=config.credential_max_age_seconds),
        clock=clock,
    )
    identities = IdentityDirectory(ticket_uow_factory)
    feed_host = FeedHost(provider_url=config.feeds_url, provider_name=config.provider_name)

    pipelines: dict[str, Pipeline] = {}
    for definition in definitions:
        if definition.id in pipelines:
            raise ValueError(f"Duplicate pipeline id: {definition.id}")
        pipeline = Pipeline(
            definition,
            adapter_factory(definition),
            ticket_uow_factory,
            issuer,
            clock=clock,
        )
        pipelines[definition.id] = pipeline
        for feed in feeds_for_pipeline(pipeline, verifier, identities):
            feed_host.register(feed)

    checkins = CheckinService(
        ticket_uow_factory,
        {definition.id: definition for definition in definitions},
        verifier,
        clock=clock,
    )
    log.info("Built application with pipelines: %s", ", ".join(pipelines) or "none")
    return IssuanceApplication(
        config=config,
        signer=signer,
        issuer=issuer,
        artifact_cache=artifact_cache,
        verifier=verifier,
        identities=identities,
        feed_host=feed_host,
        checkins=checkins,
        scheduler=scheduler
        or PipelineScheduler(default_interval_seconds=config.sync_interval_seconds),
        pipelines=pipelines,
    )
