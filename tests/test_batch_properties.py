"""
Property-based tests for Multicall3 batch resolution.

Uses Hypothesis for property-based testing to verify that batching gives
the same answers as per-name resolution and isolates failures.
"""

from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from universal_names.abi import encode_call
from universal_names.batch import BatchResolver
from universal_names.models import Call3
from universal_names.multicall import Multicall3
from universal_names.namehash import labelhash, namehash
from universal_names.normalizer import NameNormalizer
from universal_names.resolvers import ENSResolver

from fakes import ALICE, BOB, CAROL, FakeChain, run_async

EXPIRY = datetime(2026, 3, 1, tzinfo=timezone.utc)


def names(*raw: str):
    normalizer = NameNormalizer()
    return [normalizer.normalize(r) for r in raw]


def batch_for(chain: FakeChain, **kwargs):
    return BatchResolver(ENSResolver(chain), **kwargs)


class TestBatchEquivalenceProperty:
    """
    Property-based tests for batch correctness.

    **Property 15: Batch results equal per-name results**
    """

    @given(
        registered=st.lists(st.booleans(), min_size=1, max_size=30),
        max_batch_size=st.integers(min_value=1, max_value=10),
    )
    @settings(max_examples=50, deadline=None)
    def test_batch_matches_individual_resolution(self, registered: list[bool], max_batch_size: int) -> None:
        """
        Property 15: Batch/individual equivalence.

        *For any* mix of registered and unregistered second-level names and
        any chunk size, every batch result SHALL equal the address returned
        by the per-name path, and nothing SHALL be left unresolved.
        """
        chain = FakeChain()
        raw = [f"name{i}.eth" for i in range(len(registered))]
        for i, is_registered in enumerate(registered):
            if is_registered:
                chain.register(raw[i], [ALICE, BOB, CAROL][i % 3])

        batch = batch_for(chain, max_batch_size=max_batch_size)
        outcome = run_async(batch.resolve_many(names(*raw)))

        ens = ENSResolver(chain)
        for name in names(*raw):
            single = run_async(ens.resolve(name))
            batched = outcome.results[name.value]
            assert (batched.address if batched else None) == (single.address if single else None)
        assert outcome.unresolved == []

    @given(count=st.integers(min_value=1, max_value=50))
    @settings(max_examples=20, deadline=None)
    def test_round_trips_scale_with_chunks(self, count: int) -> None:
        """
        Property 15b: Two aggregate calls per chunk of names.

        *For any* number of registered names, forward resolution SHALL use
        exactly 2 * ceil(count / max_batch_size) aggregate3 calls.
        """
        chain = FakeChain()
        raw = [f"n{i}.eth" for i in range(count)]
        for r in raw:
            chain.register(r, ALICE)

        run_async(batch_for(chain, max_batch_size=20).resolve_many(names(*raw)))

        assert chain.aggregate_calls == 2 * -(-count // 20)

    def test_duplicates_are_resolved_once(self) -> None:
        chain = FakeChain()
        chain.register("vitalik.eth", ALICE)

        outcome = run_async(batch_for(chain).resolve_many(names("vitalik.eth", "VITALIK.eth")))

        assert list(outcome.results) == ["vitalik.eth"]
        assert outcome.results["vitalik.eth"].metadata["batched"] is True


class TestBatchFailureIsolationProperty:
    """
    Property-based tests for failure isolation.

    **Property 16: A failing chunk only affects its own entries**
    """

    def test_failed_chunk_marks_only_its_names(self) -> None:
        """
        Property 16: Chunk isolation.

        With two names per chunk and the second resolver-stage chunk failing
        in transport, exactly that chunk's names SHALL be reported as failed
        and all other names SHALL resolve.
        """
        chain = FakeChain()
        raw = [f"name{i}.eth" for i in range(5)]
        for r in raw:
            chain.register(r, ALICE)
        chain.failing_aggregates = {2}

        outcome = run_async(
            batch_for(chain, max_batch_size=2, max_concurrent_chunks=1).resolve_many(names(*raw))
        )

        assert outcome.failed == ["name2.eth", "name3.eth"]
        assert outcome.unresolved == ["name2.eth", "name3.eth"]
        for key in ("name0.eth", "name1.eth", "name4.eth"):
            assert outcome.results[key].address == ALICE
        assert outcome.results["name2.eth"] is None

    def test_reverting_call_is_an_authoritative_miss(self) -> None:
        chain = FakeChain()
        chain.register("good.eth", ALICE)
        chain.register("bad.eth", BOB)
        chain.reverting_nodes.add(namehash("bad.eth"))

        outcome = run_async(batch_for(chain).resolve_many(names("good.eth", "bad.eth")))

        assert outcome.results["good.eth"].address == ALICE
        assert outcome.results["bad.eth"] is None
        assert outcome.unresolved == []

    def test_subname_without_resolver_needs_fallback(self) -> None:
        chain = FakeChain()
        chain.register("alice.eth", ALICE)

        outcome = run_async(batch_for(chain).resolve_many(names("pay.alice.eth", "nobody.eth")))

        assert outcome.fallback == ["pay.alice.eth"]
        assert outcome.results["nobody.eth"] is None
        assert "nobody.eth" not in outcome.unresolved

    def test_offchain_lookup_needs_fallback(self) -> None:
        chain = FakeChain()
        chain.register("offchain.eth")
        chain.offchain_nodes.add(namehash("offchain.eth"))

        outcome = run_async(batch_for(chain).resolve_many(names("offchain.eth")))

        assert outcome.fallback == ["offchain.eth"]
        assert outcome.results["offchain.eth"] is None

    def test_invalid_configuration(self) -> None:
        with pytest.raises(ValueError):
            batch_for(FakeChain(), max_batch_size=0)
        with pytest.raises(ValueError):
            batch_for(FakeChain(), max_concurrent_chunks=0)


class TestBatchOperations:
    """Reverse, record and expiry batches."""

    def test_reverse_resolve_many_verifies_forward(self) -> None:
        chain = FakeChain()
        chain.register("vitalik.eth", ALICE)
        chain.set_primary_name(ALICE, "vitalik.eth")
        chain.set_primary_name(BOB, "vitalik.eth")

        outcome = run_async(batch_for(chain).reverse_resolve_many([ALICE, BOB, CAROL]))

        assert outcome.results == {
            ALICE.lower(): "vitalik.eth",
            BOB.lower(): None,
            CAROL.lower(): None,
        }

    def test_fetch_records_many(self) -> None:
        chain = FakeChain()
        chain.register("a.eth", ALICE, texts={"url": "https://a.example", "avatar": "ipfs://a"})
        chain.register("b.eth", BOB, texts={"url": "https://b.example"})

        outcome = run_async(
            batch_for(chain).fetch_records_many(names("a.eth", "b.eth", "c.eth"), ["url", "avatar"])
        )

        assert outcome.results == {
            "a.eth": {"url": "https://a.example", "avatar": "ipfs://a"},
            "b.eth": {"url": "https://b.example"},
            "c.eth": None,
        }

    def test_fetch_expiries_many(self) -> None:
        chain = FakeChain()
        chain.register("a.eth", ALICE, expires=EXPIRY)

        outcome = run_async(
            batch_for(chain).fetch_expiries_many(names("a.eth", "b.eth", "sub.a.eth"))
        )

        assert outcome.results == {"a.eth": EXPIRY, "b.eth": None, "sub.a.eth": None}
        assert chain.aggregate_calls == 1

    @given(garbage=st.integers(min_value=2**40, max_value=2**256 - 1))
    @settings(max_examples=25, deadline=None)
    def test_unrepresentable_expiry_is_isolated(self, garbage: int) -> None:
        """
        Property 16b: One unreadable expiry does not sink the batch.

        *For any* uint256 expiry too large for a datetime, that name SHALL
        map to None and every other name in the batch SHALL keep its expiry.
        """
        chain = FakeChain()
        chain.register("a.eth", ALICE, expires=EXPIRY)
        chain.register("b.eth", BOB)
        chain.expiries[int.from_bytes(labelhash("b"), "big")] = garbage

        outcome = run_async(batch_for(chain).fetch_expiries_many(names("a.eth", "b.eth")))

        assert outcome.results == {"a.eth": EXPIRY, "b.eth": None}
        assert outcome.failed == []


class TestMulticall3:

    def test_aggregate3_reports_per_call_success(self) -> None:
        chain = FakeChain()
        chain.register("vitalik.eth", ALICE)
        chain.reverting_nodes.add(namehash("bad.eth"))
        ens = ENSResolver(chain)

        results = run_async(Multicall3(chain).aggregate3([
            Call3(ens.registry_address, encode_call("resolver(bytes32)", [namehash("vitalik.eth")])),
            Call3(ens.registry_address, encode_call("addr(bytes32)", [namehash("bad.eth")])),
        ]))

        assert [r.success for r in results] == [True, False]
        assert run_async(Multicall3(chain).aggregate3([])) == []
