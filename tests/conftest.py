"""Shared fixtures: the reference statement and its proof."""

import pytest

from sigstark import PARAMS_TEST, PublicInput, generate_proof


SCENARIO_PUBLIC_INPUT = {'message_hash': 123, 'public_key': 456, 'signature': 789}
SCENARIO_WITNESS = [10, 20]


@pytest.fixture
def public_input():
    return PublicInput.from_mapping(SCENARIO_PUBLIC_INPUT)


@pytest.fixture(scope='session')
def scenario_proof():
    return generate_proof(SCENARIO_PUBLIC_INPUT, SCENARIO_WITNESS, PARAMS_TEST)
