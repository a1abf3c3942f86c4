import pytest
import structlog
from structlog.testing import capture_logs

from lock_checkout.logs import configure_logging
from lock_checkout.engine.events import Dependencies, SelectLockEvent
from lock_checkout.engine.machine import CheckoutMachine
from lock_checkout.engine.orchestrator import PurchaseOrchestrator
from lock_checkout.engine.states import CheckoutState
from lock_checkout.schemas.purchases import LockInfo, PurchaseRequest

from mocks import MOCK_CHAIN_ID, MOCK_LOCK_ADDRESS, MOCK_RECIPIENT, MockWeb3Provider, create_session, setup_lock


@pytest.fixture(autouse=True)
def restore_structlog():
    yield
    structlog.reset_defaults()


def test_json_output(capsys):
    configure_logging(level="debug", fmt="json")

    structlog.get_logger("checkout").info("hello", lock="0xabc")

    out = capsys.readouterr().out
    assert '"event": "hello"' in out
    assert '"lock": "0xabc"' in out
    assert '"level": "info"' in out


def test_level_filters_lower_events(capsys):
    configure_logging(level="WARNING", fmt="json")

    structlog.get_logger("checkout").info("quiet")

    assert capsys.readouterr().out == ""


@pytest.mark.parametrize("kwargs", [{"level": "LOUD"}, {"fmt": "xml"}])
def test_unknown_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        configure_logging(**kwargs)


@pytest.mark.asyncio
async def test_purchase_events_are_logged():
    provider = MockWeb3Provider()
    setup_lock(provider)
    request = PurchaseRequest(lock_address=MOCK_LOCK_ADDRESS, network=MOCK_CHAIN_ID, recipients=[MOCK_RECIPIENT])

    with capture_logs() as logs:
        await PurchaseOrchestrator(create_session(provider)).purchase(request)

    events = [entry["event"] for entry in logs]
    assert events[0] == "purchase_started"
    assert "transaction_submitted" in events
    assert events[-1] == "purchase_finished"
    assert logs[-1]["status"] == "unconfirmed"


@pytest.mark.asyncio
async def test_machine_transitions_are_logged():
    machine = CheckoutMachine(Dependencies(orchestrator=PurchaseOrchestrator(create_session(MockWeb3Provider()))))
    event = SelectLockEvent(lock=LockInfo(address=MOCK_LOCK_ADDRESS, network=MOCK_CHAIN_ID))

    with capture_logs() as logs:
        await machine.send(event)

    assert machine.state == CheckoutState.DATA_COLLECTION
    transitions = [entry for entry in logs if entry["event"] == "checkout_transition"]
    assert len(transitions) == 1
    assert transitions[0]["log_level"] == "info"
    assert transitions[0]["transition"] == repr(event)
    assert transitions[0]["from_state"] == "data_collection"
    assert transitions[0]["to_state"] == "data_collection"
