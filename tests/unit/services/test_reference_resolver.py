import pytest

from project_sync.core.exceptions import ReferenceResolutionError, TransientNetworkError
from project_sync.services.reference_resolver import ReferenceResolver, iter_references
from project_sync.services.strategies import CATEGORY_STRATEGY, PRODUCT_STRATEGY
from tests.mocks import MockData


@pytest.fixture
def categories(source, target):
    source.add("categories", {"id": "src-cat-1", "key": "shoes"})
    source.add("categories", {"id": "src-cat-2", "key": "not-synced"})
    source.add("categories", {"id": "src-cat-3"})  # no key
    target.add("categories", {"id": "tgt-cat-1", "key": "shoes"})


def test_iter_references_finds_nested_references():
    raw = MockData.product("p-1", categories=[{"typeId": "category", "id": "c1"}])
    found = list(iter_references(raw))
    assert {"typeId": "category", "id": "c1"} in found
    assert {"typeId": "product-type", "id": "src-pt-1"} in found


@pytest.mark.asyncio
async def test_resolves_ids_to_keys(resolver, categories):
    raw = MockData.product("p-1", categories=[{"typeId": "category", "id": "src-cat-1"}])

    await resolver.prepare([raw])
    draft = resolver.resolve(raw, PRODUCT_STRATEGY)

    assert draft.key == "p-1"
    assert draft.data["productType"] == {"typeId": "product-type", "key": "pt"}
    assert draft.data["categories"] == [{"typeId": "category", "key": "shoes"}]
    assert draft.publish is True
    assert "published" not in draft.data


@pytest.mark.asyncio
async def test_lookups_are_memoized(resolver, source, categories):
    first = MockData.product("p-1", categories=[{"typeId": "category", "id": "src-cat-1"}])
    second = MockData.product("p-2", categories=[{"typeId": "category", "id": "src-cat-1"}])

    await resolver.prepare([first])
    await resolver.prepare([second])

    assert source.fetch_by_id_calls.count("src-cat-1") == 1


@pytest.mark.asyncio
async def test_expanded_reference_uses_embedded_key(resolver, source, categories):
    raw = MockData.product("p-1", categories=[
        {"typeId": "category", "id": "src-cat-1", "obj": {"id": "src-cat-1", "key": "shoes"}}
    ])

    await resolver.prepare([raw])
    draft = resolver.resolve(raw, PRODUCT_STRATEGY)

    assert "src-cat-1" not in source.fetch_by_id_calls
    assert draft.data["categories"] == [{"typeId": "category", "key": "shoes"}]


@pytest.mark.asyncio
async def test_key_form_reference_is_checked_on_target(resolver, target, categories):
    raw = MockData.category("sneakers", parent={"typeId": "category", "key": "shoes"})

    await resolver.prepare([raw])
    draft = resolver.resolve(raw, CATEGORY_STRATEGY)

    assert "shoes" in target.fetch_by_key_calls
    assert draft.data["parent"] == {"typeId": "category", "key": "shoes"}


@pytest.mark.asyncio
@pytest.mark.parametrize("reference_id, message", [
    ("does-not-exist", "does not exist on source"),
    ("src-cat-3", "has no key"),
    ("src-cat-2", "does not exist on target"),
])
async def test_unresolvable_references(resolver, categories, reference_id, message):
    raw = MockData.product("p-1", categories=[{"typeId": "category", "id": reference_id}])

    await resolver.prepare([raw])
    with pytest.raises(ReferenceResolutionError) as exc_info:
        resolver.resolve(raw, PRODUCT_STRATEGY)

    assert message in str(exc_info.value)
    assert exc_info.value.type_id == "category"


@pytest.mark.asyncio
async def test_unsupported_reference_type(resolver):
    raw = MockData.product("p-1", masterVariant={
        "id": 1, "sku": "s", "prices": [{"value": 1, "customerGroup": {"typeId": "zone", "id": "z"}}]
    })

    await resolver.prepare([raw])
    with pytest.raises(ReferenceResolutionError, match="Unsupported reference type 'zone'"):
        resolver.resolve(raw, PRODUCT_STRATEGY)


@pytest.mark.asyncio
async def test_unprepared_reference_is_rejected(resolver):
    raw = MockData.product("p-1")
    with pytest.raises(ReferenceResolutionError, match="not prepared"):
        resolver.resolve(raw, PRODUCT_STRATEGY)


@pytest.mark.asyncio
async def test_failed_lookup_surfaces_as_transient(resolver, source, mocker):
    mocker.patch.object(source, "fetch_by_id", side_effect=TransientNetworkError("source down"))
    raw = MockData.product("p-1")

    await resolver.prepare([raw])

    assert source.fetch_by_id.call_count == 3
    with pytest.raises(TransientNetworkError):
        resolver.resolve(raw, PRODUCT_STRATEGY)


@pytest.mark.asyncio
async def test_snapshot_references_are_rewritten_to_keys(resolver, target, categories):
    raw = target.add("products", {
        **MockData.product("p-1"),
        "productType": {"typeId": "product-type", "id": "tgt-pt-1"},
        "categories": [{"typeId": "category", "id": "tgt-cat-1"}, {"typeId": "category", "id": "gone"}],
        "version": 7,
    })

    snapshot = await resolver.to_snapshot(raw, PRODUCT_STRATEGY)

    assert snapshot.version == 7
    assert snapshot.published is True
    assert snapshot.data["productType"] == {"typeId": "product-type", "key": "pt"}
    assert snapshot.data["categories"] == [
        {"typeId": "category", "key": "shoes"},
        {"typeId": "category", "id": "gone"},
    ]


@pytest.mark.asyncio
async def test_clear_drops_memo(resolver, source, categories):
    raw = MockData.product("p-1", categories=[{"typeId": "category", "id": "src-cat-1"}])
    await resolver.prepare([raw])
    resolver.clear()
    await resolver.prepare([raw])

    assert source.fetch_by_id_calls.count("src-cat-1") == 2


@pytest.mark.asyncio
async def test_created_key_is_marked_present(resolver, source):
    source.add("categories", {"id": "src-parent", "key": "parent"})
    child = MockData.category("child", parent={"typeId": "category", "id": "src-parent"})

    await resolver.prepare([child])
    with pytest.raises(ReferenceResolutionError):
        resolver.resolve(child, CATEGORY_STRATEGY)

    resolver.mark_present("category", "parent", "tgt-parent")
    draft = resolver.resolve(child, CATEGORY_STRATEGY)

    assert draft.data["parent"] == {"typeId": "category", "key": "parent"}


@pytest.mark.asyncio
async def test_missing_key_is_checked_again_on_next_page(resolver, source, target):
    source.add("categories", {"id": "src-parent", "key": "parent"})
    child = MockData.category("child", parent={"typeId": "category", "id": "src-parent"})
    await resolver.prepare([child])

    # Created on the target by someone else between two pages
    target.add("categories", {"id": "tgt-parent", "key": "parent"})
    await resolver.prepare([child])

    assert target.fetch_by_key_calls.count("parent") == 2
    assert resolver.resolve(child, CATEGORY_STRATEGY).data["parent"] == {"typeId": "category", "key": "parent"}


@pytest.mark.asyncio
async def test_lookups_respect_concurrency(source, target):
    for number in range(20):
        source.add("categories", {"id": f"src-cat-{number}", "key": f"cat-{number}"})
    source.latency = 0.01
    raw = MockData.product("p-1", categories=[
        {"typeId": "category", "id": f"src-cat-{number}"} for number in range(20)
    ])
    resolver = ReferenceResolver(source, target, backoff_seconds=0, concurrency=2)

    await resolver.prepare([raw])

    assert source.peak_in_flight == 2
    assert len(source.fetch_by_id_calls) == 21
