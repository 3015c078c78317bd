"""Unit tests for reagent resolution and depletion."""

import pytest

from conftest import FakeLabApiClient, FakeUnitOfWork
from lab_run.domain.model import Instrument, Reagent, ReagentUsage
from lab_run.service_layer.reagents import amount_for, deplete_reagents, resolve_reagents

REAGENTS = [
    {"id": "R1", "name": "Lyse", "unit": "mL", "quantity": 100, "usage_per_run": 5},
    {"id": "R2", "name": "Diluent", "unit": "mL", "quantity": 3, "usage_per_run": 5},
    {"id": "R3", "name": "Stain", "unit": "mL", "quantity": 40, "usage_per_run": 0},
]


def make_uow():
    return FakeUnitOfWork(FakeLabApiClient({"reagents": REAGENTS}))


def instrument(*refs):
    return Instrument(id="I1", name="Sysmex", reagent_refs=list(refs))


class TestAmountFor:

    def test_default_usage(self):
        assert amount_for(Reagent(id="R1", usage_per_run=5), None) == 5

    def test_override_by_id(self):
        assert amount_for(Reagent(id="R1", usage_per_run=5), [ReagentUsage("R1", 2)]) == 2

    def test_override_by_name(self):
        assert amount_for(Reagent(id="R1", name="Lyse", usage_per_run=5), [ReagentUsage("lyse", 7)]) == 7

    def test_zero_override_is_honored(self):
        assert amount_for(Reagent(id="R1", usage_per_run=5), [ReagentUsage("R1", 0)]) == 0

    def test_missing_amount_uses_default(self):
        assert amount_for(Reagent(id="R1", usage_per_run=5), [ReagentUsage("R1", None)]) == 5

    def test_negative_amounts_clamped(self):
        assert amount_for(Reagent(id="R1", usage_per_run=-2), None) == 0
        assert amount_for(Reagent(id="R1", usage_per_run=5), [ReagentUsage("R1", -4)]) == 0


class TestResolveReagents:

    @pytest.mark.asyncio
    async def test_resolves_ids_and_names_and_drops_unknown(self):
        uow = make_uow()
        resolved = await resolve_reagents(instrument("R1", "diluent", "R404"), uow)

        assert [r.id for r in resolved] == ["R1", "R2"]
        assert [r.amount_used for r in resolved] == [5, 5]
        assert uow.client.count("list", "reagents") == 1
        assert uow.client.count("get", "reagents") == 0

    @pytest.mark.asyncio
    async def test_pool_failure_falls_back_to_point_lookups(self):
        uow = make_uow()
        uow.client.fail_on.add(("list", "reagents"))

        resolved = await resolve_reagents(instrument("R1", "R404"), uow)

        assert [r.id for r in resolved] == ["R1"]
        assert uow.client.count("get", "reagents") == 2

    @pytest.mark.asyncio
    async def test_to_dict_carries_amount_used(self):
        resolved = await resolve_reagents(instrument("R1"), make_uow(), [ReagentUsage("R1", 1.5)])
        assert resolved[0].to_dict()["amountUsed"] == 1.5


class TestDepleteReagents:

    @pytest.mark.asyncio
    async def test_subtracts_usage(self):
        uow = make_uow()
        outcomes = await deplete_reagents(instrument("R1"), uow)

        assert uow.client.record("reagents", "R1")["quantity"] == 95
        assert [o.ok for o in outcomes] == [True]

    @pytest.mark.asyncio
    async def test_quantity_clamped_at_zero(self):
        uow = make_uow()
        await deplete_reagents(instrument("R2"), uow)
        assert uow.client.record("reagents", "R2")["quantity"] == 0

    @pytest.mark.asyncio
    async def test_unchanged_quantity_is_not_written(self):
        uow = make_uow()
        outcomes = await deplete_reagents(instrument("R3"), uow)

        assert outcomes[0].ok
        assert uow.client.count("patch", "reagents") == 0
        assert uow.client.count("put", "reagents") == 0

    @pytest.mark.asyncio
    async def test_override_amount(self):
        uow = make_uow()
        await deplete_reagents(instrument("R1"), uow, [ReagentUsage("R1", 12)])
        assert uow.client.record("reagents", "R1")["quantity"] == 88

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_others_continue(self):
        uow = make_uow()
        uow.client.fail_on.update({("patch", "reagents"), ("put", "reagents")})

        outcomes = await deplete_reagents(instrument("R1", "R2"), uow)

        assert [(o.target, o.ok) for o in outcomes] == [("R1", False), ("R2", False)]
        assert all(o.error for o in outcomes)
        assert uow.client.record("reagents", "R1")["quantity"] == 100

    @pytest.mark.asyncio
    async def test_quantity_never_increases(self):
        uow = make_uow()
        for _ in range(30):
            await deplete_reagents(instrument("R1", "R2", "R3"), uow)
            for record in uow.client.records("reagents"):
                assert record["quantity"] >= 0
        assert uow.client.record("reagents", "R1")["quantity"] == 0
