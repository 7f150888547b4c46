"""
Shared test fixtures for pytest
"""

import pytest

from dicehouse.config import config
from dicehouse.core import DiceGame, Ledger, build_ed25519_instruction
from dicehouse.models import Keypair
from dicehouse.services import event_bus, setup_logging

SOL = 1_000_000_000


@pytest.fixture(autouse=True)
def setup_test_logging(tmp_path_factory):
    """Setup logging for all tests"""
    setup_logging({"log_dir": str(tmp_path_factory.getbasetemp() / "logs")})


@pytest.fixture(autouse=True)
def reset_config():
    """Drop config overrides a test may have set"""
    yield
    config.reset()


@pytest.fixture
def ledger():
    """Empty ledger at slot 0"""
    return Ledger()


@pytest.fixture
def game(ledger):
    """Dice program bound to the test ledger"""
    return DiceGame(ledger)


@pytest.fixture
def house(ledger):
    """House keypair holding 100 SOL"""
    kp = Keypair.from_seed(bytes([7]) * 32)
    ledger.airdrop(kp.pubkey, 100 * SOL)
    return kp


@pytest.fixture
def player(ledger):
    """Player keypair holding 10 SOL"""
    kp = Keypair.from_seed(bytes([42]) * 32)
    ledger.airdrop(kp.pubkey, 10 * SOL)
    return kp


@pytest.fixture
def funded_vault(game, house):
    """House vault holding 50 SOL"""
    game.initialize(house, 50 * SOL)
    vault, _ = game.vault_address(house.pubkey)
    return vault


@pytest.fixture
def placed_bet(game, house, player, funded_vault):
    """1 SOL bet under 50 with seed 1"""
    return game.place_bet(player, house.pubkey, seed=1, roll=50, amount=SOL)


@pytest.fixture
def signed_envelope(house, placed_bet):
    """House signature over the placed bet and the primitive instruction carrying it"""
    message = placed_bet.to_slice()
    return house.sign(message), build_ed25519_instruction(house, message)


@pytest.fixture(autouse=True)
def cleanup_event_bus():
    """Clean up event bus after each test"""
    # Start event bus for tests
    event_bus.start()

    yield

    event_bus.flush()
    # Clear all subscribers after test
    event_bus.clear_all()
