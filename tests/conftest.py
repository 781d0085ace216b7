import pytest
from pharmacyline.config import PharmacyInfo
from pharmacyline.session import CallSession
from pharmacyline.state_machine import StateMachine


@pytest.fixture
def info():
    return PharmacyInfo()


@pytest.fixture
def session():
    return CallSession()


@pytest.fixture
def machine(info):
    return StateMachine(info)
