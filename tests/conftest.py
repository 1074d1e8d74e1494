import pytest

from fakes import ALICE_KEY, BOB_KEY, LEDGER_ADDRESS, LOCAL_CHAIN_ID, FakeChain, FakeWallet
from plantchain.lib.errors import LoadError
from plantchain.lib.runtime import RuntimeBootstrapper
from plantchain.models.network import Deployment
from plantchain.services.deployments import DeploymentRegistry
from plantchain.services.instance import ConfidentialInstanceFactory
from plantchain.services.plants import PlantClient
from plantchain.services.points import PointsLedgerClient


async def _no_runtime():
    raise LoadError("relay runtime not available in tests")


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def registry():
    return DeploymentRegistry([
        Deployment(chain_id=LOCAL_CHAIN_ID, address=LEDGER_ADDRESS, chain_name="localhost"),
    ])


@pytest.fixture
def alice():
    return FakeWallet(ALICE_KEY)


@pytest.fixture
def bob():
    return FakeWallet(BOB_KEY)


@pytest.fixture
def instances(chain):
    """Factory that only ever builds mock instances against the fake chain."""
    return ConfidentialInstanceFactory(
        bootstrapper=RuntimeBootstrapper(_no_runtime),
        coprocessor_for=chain.coprocessor_for,
    )


@pytest.fixture
def make_points(chain, registry, instances):
    def make(wallet, chain_id=LOCAL_CHAIN_ID):
        return PointsLedgerClient(
            wallet, chain_id, registry,
            instances=instances,
            ledger_factory=chain.connect,
        )
    return make


@pytest.fixture
def make_plants(chain, registry):
    def make(wallet, chain_id=LOCAL_CHAIN_ID):
        return PlantClient(wallet, chain_id, registry, ledger_factory=chain.connect)
    return make
