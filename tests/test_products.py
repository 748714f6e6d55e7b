from decimal import Decimal

import pytest

from conftest import run
from invoicing.core.exceptions import ConflictError, NotFoundError
from invoicing.schemas.product import ProductCreate, ProductUpdate


def product(name="Logo design", **extra):
    return ProductCreate(name=name, rate=extra.pop("rate", Decimal("150")), **extra)


def test_create_applies_defaults_and_normalizes(services, seed) -> None:
    ids = seed()

    created = run(services.products.create_product(product(rate=Decimal("99.999"), sku=""), ids.user_id))

    assert created.sku is None
    assert created.rate == Decimal("100.00")
    assert created.tax_rate == Decimal("0")
    assert created.unit == "unit"
    assert created.is_active is True


def test_names_and_skus_are_unique_per_business(services, seed) -> None:
    first = seed()
    second = seed(email="other@example.com", client_email="other@example.com")
    run(services.products.create_product(product(sku="1001"), first.user_id))

    with pytest.raises(ConflictError, match="Product name already exists"):
        run(services.products.create_product(product(), first.user_id))
    with pytest.raises(ConflictError, match="Product SKU already exists"):
        run(services.products.create_product(product("Banner", sku="1001"), first.user_id))

    # Products without a SKU never collide, and another business may reuse both
    run(services.products.create_product(product("Banner"), first.user_id))
    run(services.products.create_product(product("Poster"), first.user_id))
    run(services.products.create_product(product(sku="1001"), second.user_id))


def test_update_is_partial_and_clears_optional_fields(services, seed) -> None:
    ids = seed()
    created = run(services.products.create_product(product(sku="42", description="Vector logo"), ids.user_id))

    updated = run(services.products.update_product(
        created.id,
        ProductUpdate(rate=Decimal("175.5"), name=None, description=None, sku=" "),
        ids.user_id,
    ))

    assert updated.name == "Logo design"
    assert updated.rate == Decimal("175.50")
    assert updated.description is None
    assert updated.sku is None


def test_update_to_taken_name_conflicts(services, seed) -> None:
    ids = seed()
    run(services.products.create_product(product("Banner"), ids.user_id))
    created = run(services.products.create_product(product(), ids.user_id))

    with pytest.raises(ConflictError):
        run(services.products.update_product(created.id, ProductUpdate(name="Banner"), ids.user_id))
    assert run(services.products.get_product(created.id, ids.user_id)).name == "Logo design"


def test_search_and_active_filter(services, seed) -> None:
    ids = seed()
    run(services.products.create_product(product("Logo design", sku="100"), ids.user_id))
    run(services.products.create_product(product("Brochure", description="Tri-fold logo print"), ids.user_id))
    run(services.products.create_product(product("Legacy logo pack", is_active=False), ids.user_id))

    matches, total = run(services.products.list_products(ids.user_id, search="logo"))
    assert total == 3
    assert len(matches) == 3

    active, total = run(services.products.list_products(ids.user_id, search="logo", active=True))
    assert total == 2
    assert {p.name for p in active} == {"Logo design", "Brochure"}

    by_sku, _ = run(services.products.list_products(ids.user_id, search="100"))
    assert [p.name for p in by_sku] == ["Logo design"]


def test_products_are_scoped_to_their_business(services, seed) -> None:
    owner = seed()
    other = seed(email="other@example.com", client_email="other@example.com")
    created = run(services.products.create_product(product(), owner.user_id))

    assert run(services.products.list_products(other.user_id)) == ([], 0)
    with pytest.raises(NotFoundError):
        run(services.products.get_product(created.id, other.user_id))
    with pytest.raises(NotFoundError):
        run(services.products.delete_product(created.id, other.user_id))


def test_delete_removes_product(services, seed) -> None:
    ids = seed()
    created = run(services.products.create_product(product(), ids.user_id))

    run(services.products.delete_product(created.id, ids.user_id))

    with pytest.raises(NotFoundError):
        run(services.products.get_product(created.id, ids.user_id))
