"""
End-to-end tests for the points ledger client against the in-memory chain.
"""
import pytest

from fakes import LOCAL_CHAIN_ID
from plantchain.lib.errors import InputScopeError, LedgerReadFailed, NetworkMismatch, TransactionReverted
from plantchain.models.ledger import ReasonCode

SEPOLIA = 11155111


class TestNetworkMismatch:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation,args", [
        ("add_point", ()),
        ("tip_point", (1,)),
        ("refresh_handle", ()),
        ("get_point_logs", (1,)),
        ("load_point_logs", (1,)),
        ("decrypt_public", ("0x" + "01" * 32,)),
        ("decrypt_user", ("0x" + "01" * 32,)),
    ])
    async def test_undeployed_chain_fails_before_network(self, make_points, alice, chain, operation, args):
        client = make_points(alice, chain_id=SEPOLIA)

        with pytest.raises(NetworkMismatch) as excinfo:
            await getattr(client, operation)(*args)

        assert excinfo.value.chain_id == SEPOLIA
        assert alice.calls == [], "No RPC call may precede the deployment check"
        assert chain.calls == [], "No ledger call may precede the deployment check"

    @pytest.mark.asyncio
    async def test_plant_client_is_gated_too(self, make_plants, alice, chain):
        plants = make_plants(alice, chain_id=SEPOLIA)

        with pytest.raises(NetworkMismatch):
            await plants.create_plant("Monstera", "Monstera deliciosa")
        with pytest.raises(NetworkMismatch):
            await plants.get_my_plants()
        assert chain.calls == []


class TestPointsScenario:

    @pytest.mark.asyncio
    async def test_create_log_add_point_then_decrypt_both_ways(self, make_points, make_plants, alice):
        """Create a plant (1 point), log growth, add 1 encrypted point -> balance 2."""
        plants = make_plants(alice)
        points = make_points(alice)

        await plants.create_plant("Monstera", "Monstera deliciosa", "living room", "bafyplant")
        before = await points.refresh_handle()

        await plants.add_growth_log(1, "new leaf unfurled", "bafyleaf")
        after = await points.add_point()

        assert after != before, "A mutation always yields a new handle"
        assert after == await points.refresh_handle()
        assert await points.decrypt_public(after) == 2
        assert await points.decrypt_user(after) == 2
        assert alice.signatures == 1

    @pytest.mark.asyncio
    async def test_refresh_is_a_pure_read(self, make_points, make_plants, alice, chain):
        await make_plants(alice).create_plant("Fern", "Nephrolepis")
        points = make_points(alice)

        first = await points.refresh_handle()
        second = await points.refresh_handle()

        assert first == second
        assert chain.calls.count("getEcoPoints") == 2
        assert "addEcoPoints" not in chain.calls

    @pytest.mark.asyncio
    async def test_tip_credits_plant_owner(self, make_points, make_plants, alice, bob):
        await make_plants(alice).create_plant("Fern", "Nephrolepis")
        alice_points = make_points(alice)
        bob_points = make_points(bob)

        await bob_points.tip_point(1)

        owner_handle = await alice_points.refresh_handle()
        assert await alice_points.decrypt_public(owner_handle) == 2

    @pytest.mark.asyncio
    async def test_access_denied_when_balance_is_private(self, make_points, make_plants, alice, chain):
        from plantchain.lib.errors import AccessDenied

        chain.public_balances = False
        await make_plants(alice).create_plant("Fern", "Nephrolepis")
        points = make_points(alice)
        handle = await points.refresh_handle()

        with pytest.raises(AccessDenied):
            await points.decrypt_public(handle)
        assert await points.decrypt_user(handle) == 1


class TestEncryptedInputSubmission:

    @pytest.mark.asyncio
    async def test_consumed_input_rejected_before_submission(self, make_points, alice, chain):
        points = make_points(alice)
        enc = await points.encrypt_increment()
        await points.add_point(enc)
        submitted = list(chain.calls)

        with pytest.raises(InputScopeError):
            await points.add_point(enc)
        assert chain.calls == submitted, "Replayed input must never reach the ledger"

    @pytest.mark.asyncio
    async def test_input_for_other_user_rejected(self, make_points, alice, bob, chain):
        enc = await make_points(alice).encrypt_increment()

        with pytest.raises(InputScopeError):
            await make_points(bob).add_point(enc)
        assert "addEcoPoints" not in chain.calls

    @pytest.mark.asyncio
    async def test_reverted_tip_changes_nothing(self, make_points, alice, chain):
        points = make_points(alice)

        with pytest.raises(TransactionReverted):
            await points.tip_point(42)
        assert chain.balances == {}


class TestPointLogs:

    @pytest.mark.asyncio
    async def test_unpaid_non_owner_rejected_then_paid_read(self, make_points, make_plants, alice, bob, chain):
        await make_plants(alice).create_plant("Fern", "Nephrolepis")
        await make_points(bob).tip_point(1)
        bob_points = make_points(bob)

        with pytest.raises(LedgerReadFailed):
            await bob_points.get_point_logs(1)

        entries = await bob_points.load_point_logs(1)

        assert [e.reason for e in entries] == [ReasonCode.CREATE, ReasonCode.TIP]
        assert entries[0].from_address == alice.address
        assert entries[1].from_address == bob.address
        assert all(e.amount == 1 for e in entries)
        assert entries[1].reason.label == "tipped by another user"
        assert chain.calls.count("payToViewPointLogs") == 1

    @pytest.mark.asyncio
    async def test_underpaying_reverts(self, make_points, make_plants, alice, bob, chain):
        await make_plants(alice).create_plant("Fern", "Nephrolepis")

        with pytest.raises(TransactionReverted):
            await make_points(bob).load_point_logs(1, fee_wei=chain.fee_wei - 1)
        assert chain.paid == set()

    @pytest.mark.asyncio
    async def test_owner_reads_without_paying(self, make_points, make_plants, alice, chain):
        await make_plants(alice).create_plant("Fern", "Nephrolepis")

        entries = await make_points(alice).get_point_logs(1)

        assert len(entries) == 1
        assert "payToViewPointLogs" not in chain.calls


class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_reads_chain_id(self, registry, alice):
        from plantchain.services.points import PointsLedgerClient

        client = await PointsLedgerClient.connect(alice, registry)

        assert client.chain_id == LOCAL_CHAIN_ID
        assert client.network().contract_address == registry.get(LOCAL_CHAIN_ID).address
