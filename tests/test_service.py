"""
lootspot/tests/test_service.py

Tests for RewardService: create, remove and claim flows plus admin
operations.
"""

import json
import threading

import pytest

from lootspot.config import LootSpotConfig
from lootspot.data.record import LocationKey, make_record
from lootspot.data.store import RewardStore
from lootspot.service.completion import CompletionCommands
from lootspot.service.confirmation import ConfirmationTracker
from lootspot.service.modes import ActorMode
from lootspot.service.outcomes import FeedbackCategory, OutcomeCode, RewardAction
from lootspot.service.permissions import NodePermissionProvider, Permissions
from lootspot.service.rewards import RewardService

from test_completion import FakeClock

DIAMOND = {"item": "minecraft:diamond", "count": 1}


@pytest.fixture
def store(tmp_path):
    return RewardStore(tmp_path / "rewards.json")


@pytest.fixture
def service(store):
    return RewardService(store)


class TestSetupFlow:
    """Test placing rewards in setup mode."""

    def test_enter_setup_mode(self, service):
        """Test the mode outcome."""
        outcome = service.enter_setup_mode("admin")
        assert outcome.ok
        assert outcome.action == RewardAction.MODE
        assert outcome.message_key == "setup_mode_enabled"
        assert service.is_setup("admin")

    def test_place_reward(self, service, store):
        """Test a setup interaction creates a record and exits the mode."""
        service.enter_setup_mode("admin")
        outcome = service.handle_interaction("admin", ("w", 1, 2, 3), DIAMOND)

        assert outcome.code == OutcomeCode.SUCCESS
        assert outcome.action == RewardAction.CREATE
        assert outcome.record.claimants == set()
        assert outcome.feedback == FeedbackCategory.SUCCESS
        assert store.get(("w", 1, 2, 3)).payload == DIAMOND
        assert not service.is_setup("admin")

    def test_empty_hand(self, service, store):
        """Test an empty payload is refused and the mode is kept."""
        service.enter_setup_mode("admin")
        for held in (None, {}):
            outcome = service.handle_interaction("admin", ("w", 1, 2, 3), held)
            assert outcome.code == OutcomeCode.EMPTY_PAYLOAD
            assert outcome.feedback == FeedbackCategory.ERROR
        assert store.count() == 0
        assert service.is_setup("admin")

    def test_invalid_location(self, tmp_path):
        """Test an unresolvable world is refused."""
        store = RewardStore(
            tmp_path / "rewards.json",
            resolver=lambda world: None if world == "void" else world,
        )
        service = RewardService(store)
        service.enter_setup_mode("admin")
        outcome = service.handle_interaction("admin", ("void", 0, 0, 0), DIAMOND)
        assert outcome.code == OutcomeCode.INVALID_LOCATION
        assert store.count() == 0

    def test_unknown_category(self, service):
        """Test setup mode requires an existing category."""
        outcome = service.enter_setup_mode("admin", "gems")
        assert outcome.code == OutcomeCode.UNKNOWN_CATEGORY
        assert not service.is_setup("admin")

    def test_place_in_category(self, service, store):
        """Test the record carries the setup category."""
        service.create_category("gems")
        service.enter_setup_mode("admin", "gems")
        outcome = service.handle_interaction("admin", ("w", 1, 2, 3), DIAMOND)
        assert outcome.record.category == "gems"
        assert [r.key for r in store.list_by_category("gems")] == ["w|1|2|3"]


class TestRemoveFlow:
    """Test removing rewards in remove mode."""

    def test_remove_existing(self, service, store):
        """Test removal exits the mode."""
        store.add(make_record("w", 1, 2, 3, DIAMOND))
        service.enter_remove_mode("admin")
        outcome = service.handle_interaction("admin", ("w", 1, 2, 3))
        assert outcome.code == OutcomeCode.SUCCESS
        assert outcome.record.payload == DIAMOND
        assert store.count() == 0
        assert not service.is_remove("admin")

    def test_remove_nothing_keeps_mode(self, service):
        """Test a miss keeps the actor in remove mode."""
        service.enter_remove_mode("admin")
        outcome = service.handle_interaction("admin", ("w", 9, 9, 9))
        assert outcome.code == OutcomeCode.NO_REWARD_HERE
        assert outcome.action == RewardAction.REMOVE
        assert not outcome.passthrough
        assert service.is_remove("admin")

    def test_setup_then_remove(self, service):
        """Test modes are mutually exclusive through the service."""
        service.enter_setup_mode("admin")
        service.enter_remove_mode("admin")
        assert not service.is_setup("admin")
        assert service.is_remove("admin")

    def test_exit_mode(self, service):
        """Test exit reports the mode that was left."""
        service.enter_remove_mode("admin")
        assert service.exit_mode("admin") == ActorMode.REMOVE
        assert service.exit_mode("admin") == ActorMode.NONE

    def test_disconnect_untracked(self, service):
        """Test disconnect is safe for actors never seen."""
        service.on_disconnect("ghost")
        assert not service.is_setup("ghost")
        assert not service.is_remove("ghost")


class TestClaimFlow:
    """Test claiming rewards."""

    def test_claim_once(self, service, store):
        """Test claim then repeat claim for the same actor."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))

        first = service.handle_interaction("p1", ("w", 0, 0, 0))
        assert first.code == OutcomeCode.SUCCESS
        assert first.payload == DIAMOND
        assert store.get(("w", 0, 0, 0)).claimants == {"p1"}

        second = service.handle_interaction("p1", ("w", 0, 0, 0))
        assert second.code == OutcomeCode.ALREADY_CLAIMED
        assert second.payload is None
        assert store.get(("w", 0, 0, 0)).claimants == {"p1"}

    def test_claim_is_persisted(self, service, store):
        """Test claims are written to disk."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        service.handle_interaction("p1", ("w", 0, 0, 0))
        document = json.loads(store.path.read_text())
        assert document["default"]["w|0|0|0"]["claimedPlayers"] == ["p1"]

    def test_distinct_actors(self, service, store):
        """Test every actor gets their own claim."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        assert service.handle_interaction("p1", ("w", 0, 0, 0)).ok
        assert service.handle_interaction("p2", ("w", 0, 0, 0)).ok
        assert store.get(("w", 0, 0, 0)).claimants == {"p1", "p2"}

    def test_nothing_here_passes_through(self, service):
        """Test a miss tells the host to carry on."""
        outcome = service.handle_interaction("p1", LocationKey("w", 5, 5, 5))
        assert outcome.code == OutcomeCode.NO_REWARD_HERE
        assert outcome.passthrough
        assert outcome.feedback == FeedbackCategory.INFO

    def test_empty_reward(self, service, store):
        """Test claiming an empty record records nothing."""
        store.add(make_record("w", 0, 0, 0, None))
        outcome = service.handle_interaction("p1", ("w", 0, 0, 0))
        assert outcome.code == OutcomeCode.EMPTY_PAYLOAD
        assert store.get(("w", 0, 0, 0)).claimants == set()

    def test_no_claim_permission(self, store):
        """Test claims need the category claim node."""
        permissions = NodePermissionProvider({"p1": [Permissions.claim_category("gems")]})
        service = RewardService(store, permissions=permissions)
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        store.add(make_record("w", 1, 0, 0, DIAMOND, category="gems"))

        denied = service.handle_interaction("p1", ("w", 0, 0, 0))
        assert denied.code == OutcomeCode.NO_PERMISSION
        assert denied.passthrough
        assert store.get(("w", 0, 0, 0)).claimants == set()

        assert service.handle_interaction("p1", ("w", 1, 0, 0)).ok

    def test_admin_commands_need_permission(self, store):
        """Test setup and remove modes need their command nodes."""
        permissions = NodePermissionProvider({"admin": [Permissions.ADMIN], "player": []})
        service = RewardService(store, permissions=permissions)
        assert service.enter_setup_mode("admin").ok
        assert service.enter_setup_mode("player").code == OutcomeCode.NO_PERMISSION
        assert service.enter_remove_mode("player").code == OutcomeCode.NO_PERMISSION

    def test_category_completion(self, tmp_path, store):
        """Test claiming the last reward of a category returns its commands."""
        completions = CompletionCommands(tmp_path / "completions.json")
        completions.add("gems", "give {player} diamond_block 1")
        service = RewardService(store, completions=completions)
        service.create_category("gems")
        store.add(make_record("w", 0, 0, 0, DIAMOND, category="gems"))
        store.add(make_record("w", 1, 0, 0, DIAMOND, category="gems"))
        store.add(make_record("w", 2, 0, 0, None, category="gems"))

        first = service.handle_interaction("uuid-1", ("w", 0, 0, 0), actor_name="Steve")
        assert first.completed_category is None
        assert first.commands == []

        last = service.handle_interaction("uuid-1", ("w", 1, 0, 0), actor_name="Steve")
        assert last.completed_category == "gems"
        assert last.commands == ["give Steve diamond_block 1"]


class TestAdminOperations:
    """Test reset, clear, reload and listing."""

    def test_reset_claims(self, service, store):
        """Test resetting an actor's claims over three records."""
        store.add(make_record("w", 0, 0, 0, DIAMOND, claimants=["p1", "p2"]))
        store.add(make_record("w", 1, 0, 0, DIAMOND, claimants=["p2"]))
        store.add(make_record("w", 2, 0, 0, DIAMOND, claimants=["p1"]))

        assert service.reset_claims("p1") == 2
        assert store.get(("w", 0, 0, 0)).claimants == {"p2"}
        assert store.get(("w", 2, 0, 0)).claimants == set()
        document = json.loads(store.path.read_text())
        assert document["default"]["w|0|0|0"]["claimedPlayers"] == ["p2"]

    def test_reset_claims_none(self, service, store):
        """Test resetting an actor with no claims."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        assert service.reset_claims("p1") == 0

    def test_clear_all(self, service, store):
        """Test clear_all removes everything."""
        for x in range(3):
            store.add(make_record("w", x, 0, 0, DIAMOND))
        assert service.clear_all() == 3
        assert store.count() == 0

    def test_request_clear_all(self, store):
        """Test clear-all needs a repeat within the window."""
        clock = FakeClock()
        service = RewardService(store, confirmations=ConfirmationTracker(30.0, clock))
        store.add(make_record("w", 0, 0, 0, DIAMOND))

        first = service.request_clear_all("admin")
        assert first.code == OutcomeCode.CONFIRMATION_REQUIRED
        assert store.count() == 1

        clock.now += 31
        assert service.request_clear_all("admin").code == OutcomeCode.CONFIRMATION_REQUIRED

        clock.now += 5
        done = service.request_clear_all("admin")
        assert done.ok
        assert done.count == 1
        assert store.count() == 0

    def test_request_clear_all_needs_permission(self, store):
        """Test clear-all requires the clearall command node."""
        permissions = NodePermissionProvider({"admin": [Permissions.COMMAND_CLEARALL], "mod": []})
        service = RewardService(store, permissions=permissions)
        store.add(make_record("w", 0, 0, 0, DIAMOND))

        for _ in range(2):
            denied = service.request_clear_all("mod")
            assert denied.code == OutcomeCode.NO_PERMISSION
        assert store.count() == 1

        assert service.request_clear_all("admin").code == OutcomeCode.CONFIRMATION_REQUIRED
        assert service.request_clear_all("admin").ok
        assert store.count() == 0

    def test_reload_all(self, service, store):
        """Test reload returns the loaded count."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        store.add(make_record("w", 1, 0, 0, DIAMOND))
        assert service.reload_all() == 2

    def test_create_category(self, service):
        """Test category creation outcomes."""
        assert service.create_category("gems").ok
        assert service.create_category("gems").code == OutcomeCode.CATEGORY_EXISTS
        assert service.create_category("bad name").code == OutcomeCode.INVALID_CATEGORY_NAME
        assert service.list_categories() == {"default", "gems"}

    def test_list_entries(self, service, store):
        """Test listing all and by category."""
        service.create_category("gems")
        store.add(make_record("w", 1, 0, 0, DIAMOND, category="gems"))
        store.add(make_record("w", 0, 0, 0, DIAMOND))

        everything = service.list_entries()
        assert [r.key for r in everything.records] == ["w|0|0|0", "w|1|0|0"]
        assert everything.count == 2

        gems = service.list_entries("gems")
        assert [r.key for r in gems.records] == ["w|1|0|0"]

        unknown = service.list_entries("nope")
        assert unknown.code == OutcomeCode.UNKNOWN_CATEGORY
        assert unknown.records == []

    def test_is_protected(self, service, store):
        """Test reward blocks are protected."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        assert service.is_protected(("w", 0, 0, 0))
        assert not service.is_protected(("w", 0, 1, 0))

    def test_from_config(self, tmp_path):
        """Test building the service from configuration."""
        config = LootSpotConfig(data_dir=tmp_path, confirmation_timeout=5.0)
        service = RewardService.from_config(config)
        assert service.store.path == tmp_path / "lootspot.json"
        assert service.completions.path == tmp_path / "completions.json"
        assert service.confirmations.timeout == 5.0

    def test_outcome_to_dict(self, service, store):
        """Test outcome serialization for the presentation layer."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        data = service.handle_interaction("p1", ("w", 0, 0, 0)).to_dict()
        assert data["code"] == "success"
        assert data["message_key"] == "loot_claimed"
        assert data["location"] == "w|0|0|0"
        assert data["passthrough"] is False


class TestServiceConcurrency:
    """Test concurrent interactions."""

    @pytest.mark.timeout(30)
    def test_concurrent_claims(self, service, store):
        """Test every actor claims exactly once under contention."""
        store.add(make_record("w", 0, 0, 0, DIAMOND))
        results = []
        lock = threading.Lock()

        def worker(actor):
            for _ in range(5):
                outcome = service.handle_interaction(actor, ("w", 0, 0, 0))
                with lock:
                    results.append((actor, outcome.code))

        threads = [threading.Thread(target=worker, args=(f"p{n}",)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        successes = [actor for actor, code in results if code == OutcomeCode.SUCCESS]
        assert sorted(successes) == sorted(f"p{n}" for n in range(10))
        assert store.get(("w", 0, 0, 0)).claimants == {f"p{n}" for n in range(10)}

    @pytest.mark.timeout(30)
    def test_remove_races_claim(self, service, store):
        """Test a claim racing a remove sees either the record or nothing."""
        for x in range(20):
            store.add(make_record("w", x, 0, 0, DIAMOND))
        claims = []

        def claimer():
            for x in range(20):
                claims.append(service.handle_interaction("p1", ("w", x, 0, 0)).code)

        def remover():
            for x in range(20):
                service.enter_remove_mode("admin")
                service.handle_interaction("admin", ("w", x, 0, 0))

        threads = [threading.Thread(target=claimer), threading.Thread(target=remover)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.count() == 0
        assert set(claims) <= {OutcomeCode.SUCCESS, OutcomeCode.NO_REWARD_HERE}
