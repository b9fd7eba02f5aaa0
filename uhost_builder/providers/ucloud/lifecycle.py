"""Lifecycle of the temporary UHost instance (provision, teardown).

``StepCreateInstance.run`` walks the provisioning phases

    CREATE -> WAIT_RUNNING -> REFRESH -> [WAIT_BOOT_DISK] -> DONE

and ``StepCreateInstance.cleanup`` walks the teardown phases

    READ -> [STOP -> WAIT_STOPPED] -> TERMINATE -> WAIT_DELETED -> DONE

Bracketed phases are skipped when their guard says the instance is already
there: a boot disk reported Normal, an instance already Stopped. Provider
statuses are interpreted per phase by the ``classify_*`` functions.

Provisioning failures halt the pipeline. Teardown failures are reported to
the UI and recorded in the returned ``TeardownReport``; they never raise.
"""

from __future__ import annotations

import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from uhost_builder.constants import SLOW_BOOT_DISK_TYPES, BootDiskState, InstanceState
from uhost_builder.core.exceptions import (
    ExpectedStateError,
    FatalInstanceStateError,
    NotFoundError,
    ProvisioningError,
)
from uhost_builder.pipeline import (
    STATE_CANCEL,
    STATE_CANCELLED,
    STATE_HALTED,
    StateBag,
    StepAction,
    halt,
)
from uhost_builder.providers.ucloud.request import build_create_request, resolve_password
from uhost_builder.retry import RetryPolicy, negate, on_exception_type, retry_until

if TYPE_CHECKING:
    from uhost_builder.config import UCloudConfig
    from uhost_builder.providers.ucloud.client import ProviderClient
    from uhost_builder.providers.ucloud.types import InstanceDescriptor
    from uhost_builder.ui import Ui

log = logger.bind(component="uhost")

# Seeded once per process; steps may inject their own source.
_default_rng = random.Random()

RUNNING_WAIT = RetryPolicy(max_attempts=20, initial_delay=2, max_delay=6, multiplier=2)
# Local boot disks are documented to take around ten minutes to initialize
BOOT_DISK_WAIT = RetryPolicy(max_attempts=200, initial_delay=2, max_delay=12, multiplier=2)
STOPPED_WAIT = RetryPolicy(max_attempts=30, initial_delay=2, max_delay=6, multiplier=2)
DELETED_WAIT = RetryPolicy(max_attempts=30, initial_delay=2, max_delay=6, multiplier=2)

_FATAL_REASONS: dict[InstanceState, str] = {
    InstanceState.RESIZE_FAIL: "resizing instance failed",
    InstanceState.INSTALL_FAIL: "install failed",
}


# =============================================================================
# Classification
# =============================================================================


class Verdict(Enum):
    SUCCESS = "success"
    RETRY = "retry"
    FATAL = "fatal"


def classify_running(state: InstanceState) -> Verdict:
    if state is InstanceState.RUNNING:
        return Verdict.SUCCESS
    if state.is_fatal:
        return Verdict.FATAL
    return Verdict.RETRY


def classify_boot_disk(state: BootDiskState) -> Verdict:
    return Verdict.SUCCESS if state is BootDiskState.NORMAL else Verdict.RETRY


def classify_stopped(state: InstanceState) -> Verdict:
    return Verdict.SUCCESS if state is InstanceState.STOPPED else Verdict.RETRY


def boot_disk_ready(instance: InstanceDescriptor) -> bool:
    return classify_boot_disk(instance.boot_disk_state) is Verdict.SUCCESS


def needs_stop(instance: InstanceDescriptor) -> bool:
    return classify_stopped(instance.state) is not Verdict.SUCCESS


# =============================================================================
# Phases
# =============================================================================


class ProvisionPhase(Enum):
    CREATE = "create"
    WAIT_RUNNING = "wait_running"
    REFRESH = "refresh"
    WAIT_BOOT_DISK = "wait_boot_disk"
    DONE = "done"


class TeardownPhase(Enum):
    READ = "read"
    STOP = "stop"
    WAIT_STOPPED = "wait_stopped"
    TERMINATE = "terminate"
    WAIT_DELETED = "wait_deleted"
    DONE = "done"


_PROVISION_ERRORS: dict[ProvisionPhase, str] = {
    ProvisionPhase.CREATE: "Error on creating instance",
    ProvisionPhase.WAIT_RUNNING: 'Error on waiting for instance "{id}" to become available',
    ProvisionPhase.REFRESH: 'Error on reading instance when creating "{id}"',
    ProvisionPhase.WAIT_BOOT_DISK: 'Error on waiting for boot disk of instance "{id}" initialized',
}

_TEARDOWN_ERRORS: dict[TeardownPhase, str] = {
    TeardownPhase.READ: 'Error on reading instance when deleting "{id}", {err}',
    TeardownPhase.STOP: 'Error on stopping instance when deleting "{id}", {err}',
    TeardownPhase.WAIT_STOPPED: 'Error on waiting for stopping instance when deleting "{id}", {err}',
    TeardownPhase.TERMINATE: 'Error on deleting instance "{id}", {err}',
    TeardownPhase.WAIT_DELETED: 'Error on waiting for instance "{id}" to be deleted: {err}',
}


@dataclass(frozen=True, slots=True)
class TeardownReport:
    """Outcome of one cleanup run.

    Attributes:
        instance_id: The instance torn down ("" when nothing was created).
        phases: Teardown phases entered, in order.
        deleted: The instance is confirmed gone.
        error: Message of the failure that ended teardown early, if any.
        skipped: No instance was ever created, so nothing was attempted.
    """

    instance_id: str
    phases: tuple[TeardownPhase, ...] = ()
    deleted: bool = False
    error: str | None = None
    skipped: bool = False


@dataclass(slots=True)
class _Teardown:
    client: ProviderClient
    ui: Ui
    instance: InstanceDescriptor | None = None
    phases: list[TeardownPhase] = field(default_factory=list)
    deleted: bool = False


# =============================================================================
# Step
# =============================================================================


class StepCreateInstance:
    """Create one UHost instance, wait until usable, delete it on cleanup.

    Reads ``client``, ``ui``, ``config`` and ``source_image`` (plus the
    optional ``security_group_id``, ``vpc_id``, ``subnet_id``) from the
    state bag and publishes the fresh instance record as ``instance``.

    Args:
        rng: Source for password generation.
        sleep: Replaces the cancellable sleep between polls (tests).
    """

    def __init__(
        self,
        region: str,
        zone: str,
        instance_type: str,
        instance_name: str,
        boot_disk_type: str,
        source_image_id: str,
        use_private_ip: bool = False,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.region = region
        self.zone = zone
        self.instance_type = instance_type
        self.instance_name = instance_name
        self.boot_disk_type = boot_disk_type
        self.source_image_id = source_image_id
        self.use_private_ip = use_private_ip

        self._rng = rng or _default_rng
        self._sleep = sleep
        self._cancel: threading.Event | None = None
        self._instance_id = ""
        self._report: TeardownReport | None = None
        self.provision_phases: list[ProvisionPhase] = []

        self._provision: dict[ProvisionPhase, Callable[[StateBag], ProvisionPhase]] = {
            ProvisionPhase.CREATE: self._create,
            ProvisionPhase.WAIT_RUNNING: self._wait_running,
            ProvisionPhase.REFRESH: self._refresh,
            ProvisionPhase.WAIT_BOOT_DISK: self._wait_boot_disk,
        }
        self._teardown: dict[TeardownPhase, Callable[[_Teardown], TeardownPhase]] = {
            TeardownPhase.READ: self._read,
            TeardownPhase.STOP: self._stop,
            TeardownPhase.WAIT_STOPPED: self._wait_stopped,
            TeardownPhase.TERMINATE: self._terminate,
            TeardownPhase.WAIT_DELETED: self._wait_deleted,
        }

    @classmethod
    def from_config(cls, config: UCloudConfig, **kwargs: object) -> StepCreateInstance:
        return cls(
            region=config.region,
            zone=config.zone,
            instance_type=config.instance_type,
            instance_name=config.instance_name,
            boot_disk_type=config.boot_disk_type,
            source_image_id=config.source_image_id,
            use_private_ip=config.use_ssh_private_ip,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def instance_id(self) -> str:
        return self._instance_id

    # -------------------------------------------------------------------------
    # Provisioning
    # -------------------------------------------------------------------------

    def run(self, state: StateBag) -> StepAction:
        self._cancel = state.get(STATE_CANCEL, None)

        phase = ProvisionPhase.CREATE
        while phase is not ProvisionPhase.DONE:
            self.provision_phases.append(phase)
            log.debug("Provision phase {phase}", phase=phase.value, instance_id=self._instance_id)
            try:
                phase = self._provision[phase](state)
            except Exception as e:
                log.error("Provisioning failed in {phase}: {err}", phase=phase.value, err=e)
                return halt(state, e, _PROVISION_ERRORS[phase].format(id=self._instance_id))

        return StepAction.CONTINUE

    def _create(self, state: StateBag) -> ProvisionPhase:
        if self._instance_id:
            raise ProvisioningError(f'instance "{self._instance_id}" was already created by this step')

        client: ProviderClient = state.get("client")
        ui: Ui = state.get("ui")
        config: UCloudConfig = state.get("config")

        ui.say("Creating instance...")
        password = resolve_password(config, state.get("source_image"), self._rng)
        request = build_create_request(self, state, password)

        self._instance_id = client.create(request)
        log.info("Created instance {instance_id}", instance_id=self._instance_id)
        return ProvisionPhase.WAIT_RUNNING

    def _wait_running(self, state: StateBag) -> ProvisionPhase:
        client: ProviderClient = state.get("client")
        instance_id = self._instance_id

        def check() -> InstanceDescriptor:
            instance = client.describe(instance_id)
            match classify_running(instance.state):
                case Verdict.SUCCESS:
                    return instance
                case Verdict.FATAL:
                    raise FatalInstanceStateError(
                        instance_id, instance.state, _FATAL_REASONS[instance.state]
                    )
                case _:
                    raise ExpectedStateError("instance", instance_id)

        retry_until(
            check,
            policy=RUNNING_WAIT,
            retryable=on_exception_type(ExpectedStateError, NotFoundError),
            cancel=self._cancel,
            sleep=self._sleep,
            description=f'instance "{instance_id}"',
        )

        state.get("ui").message(f'Creating instance "{instance_id}" complete')
        return ProvisionPhase.REFRESH

    def _refresh(self, state: StateBag) -> ProvisionPhase:
        client: ProviderClient = state.get("client")
        instance = client.describe(self._instance_id)
        state.put("instance", instance)

        if boot_disk_ready(instance):
            return ProvisionPhase.DONE
        return ProvisionPhase.WAIT_BOOT_DISK

    def _wait_boot_disk(self, state: StateBag) -> ProvisionPhase:
        client: ProviderClient = state.get("client")
        ui: Ui = state.get("ui")
        instance_id = self._instance_id

        ui.say("Waiting for boot disk of instance initialized")
        if self.boot_disk_type in SLOW_BOOT_DISK_TYPES:
            ui.message(
                "Warning: It takes around 10 mins for boot disk initialization "
                f'when `boot_disk_type` is "{self.boot_disk_type}"'
            )

        def check() -> InstanceDescriptor:
            instance = client.describe(instance_id)
            if classify_boot_disk(instance.boot_disk_state) is not Verdict.SUCCESS:
                raise ExpectedStateError("boot_disk of instance", instance_id)
            return instance

        instance = retry_until(
            check,
            policy=BOOT_DISK_WAIT,
            retryable=on_exception_type(ExpectedStateError),
            cancel=self._cancel,
            sleep=self._sleep,
            description=f'boot disk of instance "{instance_id}"',
        )
        state.put("instance", instance)

        ui.message(f'Waiting for boot disk of instance "{instance_id}" initialized complete')
        return ProvisionPhase.DONE

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def cleanup(self, state: StateBag) -> TeardownReport:
        """Stop and terminate the instance created by ``run``. Never raises."""
        if self._report is not None:
            return self._report
        if not self._instance_id:
            self._report = TeardownReport(instance_id="", skipped=True)
            return self._report

        ui: Ui = state.get("ui")
        if state.get(STATE_CANCELLED, False) or state.get(STATE_HALTED, False):
            ui.say("Deleting instance because of cancellation or error...")
        else:
            ui.say("Deleting instance...")

        run = _Teardown(client=state.get("client"), ui=ui)
        error: str | None = None

        phase = TeardownPhase.READ
        while phase is not TeardownPhase.DONE:
            run.phases.append(phase)
            log.debug("Teardown phase {phase}", phase=phase.value, instance_id=self._instance_id)
            try:
                phase = self._teardown[phase](run)
            except Exception as e:
                error = _TEARDOWN_ERRORS[phase].format(id=self._instance_id, err=e)
                ui.error(error)
                if phase is not TeardownPhase.READ:
                    log.error(
                        "Instance {instance_id} may be left behind: {error}",
                        instance_id=self._instance_id,
                        error=error,
                    )
                break

        self._report = TeardownReport(
            instance_id=self._instance_id,
            phases=tuple(run.phases),
            deleted=run.deleted,
            error=error,
        )
        return self._report

    def _read(self, run: _Teardown) -> TeardownPhase:
        try:
            run.instance = run.client.describe(self._instance_id)
        except NotFoundError:
            run.deleted = True
            return TeardownPhase.DONE

        return TeardownPhase.STOP if needs_stop(run.instance) else TeardownPhase.TERMINATE

    def _stop(self, run: _Teardown) -> TeardownPhase:
        run.client.stop(self._instance_id)
        return TeardownPhase.WAIT_STOPPED

    def _wait_stopped(self, run: _Teardown) -> TeardownPhase:
        instance_id = self._instance_id

        def check() -> None:
            instance = run.client.describe(instance_id)
            if classify_stopped(instance.state) is not Verdict.SUCCESS:
                raise ExpectedStateError("instance", instance_id)

        # Cleanup also runs after cancellation, so its waits ignore the cancel event
        retry_until(
            check,
            policy=STOPPED_WAIT,
            retryable=on_exception_type(ExpectedStateError),
            sleep=self._sleep,
            description=f'instance "{instance_id}" to stop',
        )
        return TeardownPhase.TERMINATE

    def _terminate(self, run: _Teardown) -> TeardownPhase:
        run.client.terminate(self._instance_id, release_udisk=True, release_eip=True)
        return TeardownPhase.WAIT_DELETED

    def _wait_deleted(self, run: _Teardown) -> TeardownPhase:
        instance_id = self._instance_id

        def check() -> None:
            try:
                run.client.describe(instance_id)
            except NotFoundError:
                return
            raise ExpectedStateError("instance", instance_id)

        retry_until(
            check,
            policy=DELETED_WAIT,
            retryable=negate(on_exception_type(NotFoundError)),
            sleep=self._sleep,
            description=f'instance "{instance_id}" to be deleted',
        )

        run.deleted = True
        run.ui.message(f'Deleting instance "{instance_id}" complete')
        return TeardownPhase.DONE
