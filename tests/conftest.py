import json
import os

import pytest
import yaml

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(name):
    with open(os.path.join(FIXTURES, name)) as fh:
        if name.endswith(".json"):
            return json.load(fh)
        return yaml.safe_load(fh)


@pytest.fixture
def web_app_doc():
    return load_fixture("web_app.json")


@pytest.fixture
def three_tier_doc():
    return load_fixture("three_tier.yaml")


@pytest.fixture(scope="session")
def tables():
    from iacforge.mappings import load_mapping_tables
    return load_mapping_tables()
