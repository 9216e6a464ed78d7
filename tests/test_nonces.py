"""Tests for the nonce ledger — proves counters are monotonic and gapless."""

from quorumsig.authority.nonces import NonceLedger


class TestNonceLedger:
    def test_fresh_signer_starts_at_zero(self, alice) -> None:
        assert NonceLedger({}).current(alice.address) == 0

    def test_consume_returns_then_increments(self, alice) -> None:
        ledger = NonceLedger({})
        assert ledger.consume(alice.address) == 0
        assert ledger.consume(alice.address) == 1
        assert ledger.current(alice.address) == 2

    def test_counters_are_per_signer(self, alice, bob) -> None:
        ledger = NonceLedger({})
        ledger.consume(alice.address)
        assert ledger.current(bob.address) == 0

    def test_consume_all_in_list_order(self, alice, bob) -> None:
        ledger = NonceLedger({})
        ledger.consume(bob.address)
        assert ledger.consume_all([alice.address, bob.address]) == (0, 1)
        assert ledger.current(alice.address) == 1
        assert ledger.current(bob.address) == 2

    def test_lowercase_and_checksummed_share_a_counter(self, alice) -> None:
        ledger = NonceLedger({})
        ledger.consume(alice.address.lower())
        assert ledger.current(alice.address) == 1

    def test_counters_live_in_backing_storage(self, alice) -> None:
        storage = {}
        NonceLedger(storage).consume(alice.address)
        assert NonceLedger(storage).current(alice.address) == 1
