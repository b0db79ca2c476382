"""Architecture fixtures: the tokenworkflow import graph and its layers."""

import os

import pytest
from pytestarch import (
    EvaluableArchitecture,
    LayeredArchitecture,
    get_evaluable_architecture,
)

SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "src"))
PACKAGE = "tokenworkflow"


def _module(name: str) -> str:
    # pytestarch names modules from the source root's parent, hence the src. prefix
    return f"src.{PACKAGE}.{name}"


@pytest.fixture(scope="session")
def evaluable() -> EvaluableArchitecture:
    """Import graph of src/tokenworkflow."""
    return get_evaluable_architecture(SRC_DIR, os.path.join(SRC_DIR, PACKAGE))


@pytest.fixture(scope="session")
def layers() -> LayeredArchitecture:
    """
    Layers of the token workflow, innermost first.

    domain holds the models and the ports; application holds the pipeline
    with its stage runners; infrastructure holds the adapters injected into
    the pipeline plus the config loader; entrypoint is the click CLI that
    inspects governance config.
    """
    return (
        LayeredArchitecture()
        .layer("domain")
        .containing_modules([_module("domain")])
        .layer("application")
        .containing_modules([_module("application")])
        .layer("infrastructure")
        .containing_modules([_module("infrastructure")])
        .layer("entrypoint")
        .containing_modules([_module("cli")])
    )
