from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ticketpipe.app import build_application

from tests.helpers.ticketing import Holder, csv_rows, make_definition

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

    from ticketpipe.app import IssuanceApplication
    from ticketpipe.config import IssuanceConfig
    from ticketpipe.domain.model import PipelineDefinition

    from tests.helpers.ticketing import MutableClock

HOLDER_EMAIL = "holder@example.com"
STAFF_EMAIL = "staff@example.com"


@pytest.fixture
def scenario_definition() -> PipelineDefinition:
    return make_definition(
        data=csv_rows(
            f"pos-7,{HOLDER_EMAIL},Ada Attendee,E1,ga,,,,",
            f"staff-1,{STAFF_EMAIL},Grace Staff,E1,staff,,,,",
        )
    )


@pytest.fixture
def application(
    sqlite_engine: Engine,
    issuance_config: IssuanceConfig,
    scenario_definition: PipelineDefinition,
    clock: MutableClock,
) -> Iterator[IssuanceApplication]:
    _ = sqlite_engine
    application = build_application(issuance_config, [scenario_definition], clock=clock)
    application.start(schedule=False)
    try:
        yield application
    finally:
        application.stop()


@pytest.fixture
def holder(application: IssuanceApplication) -> Holder:
    holder = Holder()
    application.link_identity(commitment=holder.commitment, email=HOLDER_EMAIL)
    return holder


@pytest.fixture
def staff(application: IssuanceApplication) -> Holder:
    staff = Holder()
    application.link_identity(commitment=staff.commitment, email=STAFF_EMAIL)
    return staff
