import os

import pytest

from dpf import logging as dlog
from dpf.config import DPFConfig, get_config
from dpf.metrics import Metrics
from dpf.policy import PermissionEngine, PolicyStore
from dpf.sources import LeafSetProofSource


@pytest.fixture
def clean_env(monkeypatch):
    """
    Drop DPF_* variables inherited from the outer environment and reset the
    cached config and the logging context around the test.
    """
    for k in list(os.environ):
        if k.startswith("DPF_"):
            monkeypatch.delenv(k, raising=False)
    get_config.cache_clear()
    dlog.clear_context()
    yield monkeypatch
    get_config.cache_clear()
    dlog.clear_context()


@pytest.fixture
def metrics() -> Metrics:
    return Metrics()


@pytest.fixture
def source() -> LeafSetProofSource:
    return LeafSetProofSource()


@pytest.fixture
def store(metrics) -> PolicyStore:
    return PolicyStore(metrics=metrics)


@pytest.fixture
def engine(store, source, metrics) -> PermissionEngine:
    return PermissionEngine(store=store, source=source, config=DPFConfig(), metrics=metrics)
