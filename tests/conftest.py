from __future__ import annotations

import random

import pytest

from tests.fakes import FakeClient, RecordingSleep, RecordingUi
from uhost_builder.config import Comm, UCloudConfig
from uhost_builder.pipeline import StateBag
from uhost_builder.providers.ucloud.lifecycle import StepCreateInstance
from uhost_builder.providers.ucloud.types import SourceImage


@pytest.fixture
def config() -> UCloudConfig:
    return UCloudConfig(
        region="cn-bj2",
        zone="cn-bj2-02",
        instance_type="n-basic-2",
        source_image_id="uimage-f1chxn",
        public_key="pub",
        private_key="priv",
        comm=Comm(),
    )


@pytest.fixture
def source_image() -> SourceImage:
    return SourceImage(id="uimage-f1chxn", os_type="Linux", size_gb=20, name="CentOS 7.6")


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def state(client: FakeClient, ui: RecordingUi, config: UCloudConfig, source_image: SourceImage) -> StateBag:
    return StateBag({"client": client, "ui": ui, "config": config, "source_image": source_image})


@pytest.fixture
def step(config: UCloudConfig, sleeps: RecordingSleep) -> StepCreateInstance:
    return StepCreateInstance.from_config(config, rng=random.Random(7), sleep=sleeps)
