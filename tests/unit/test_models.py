import pytest
from pydantic import ValidationError

from speedprice.domain.models import (
    DEFAULT_UNIT,
    BulkUpsertResult,
    Prices,
    Product,
    ProductCreate,
    ProductUpdate,
    SearchPage,
    SearchState,
)


def test_wholesale_defaults_to_retail() -> None:
    assert Prices(retail=15000).wholesale == 15000
    assert Prices(retail=15000, wholesale=0).wholesale == 15000
    assert Prices(retail=15000, wholesale=12000).wholesale == 12000


def test_retail_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Prices(retail=0)


def test_product_derives_search_slug() -> None:
    product = Product(name="Cà phê Đen", barcode="8934", prices=Prices(retail=20000))
    assert product.search_slug == "ca phe den 8934"
    assert product.unit == DEFAULT_UNIT
    assert product.id


def test_product_slug_ignores_supplied_value() -> None:
    product = Product(name="Trà xanh", searchSlug="stale", prices=Prices(retail=8000))
    assert product.search_slug == "tra xanh"


def test_product_accepts_wire_aliases() -> None:
    product = Product.model_validate(
        {"name": "Muối", "prices": {"retail": 5000}, "updatedAt": 42}
    )
    assert product.updated_at == 42
    dumped = product.model_dump(by_alias=True)
    assert dumped["updatedAt"] == 42
    assert dumped["searchSlug"] == "muoi"


def test_blank_barcode_and_location_become_none() -> None:
    product = Product(name="Muối", barcode="  ", location=" ", prices=Prices(retail=5000))
    assert product.barcode is None
    assert product.location is None


def test_barcode_must_be_digits() -> None:
    with pytest.raises(ValidationError):
        Product(name="Muối", barcode="89-34", prices=Prices(retail=5000))


def test_create_rejects_blank_name_and_defaults_unit() -> None:
    with pytest.raises(ValidationError):
        ProductCreate(name="   ", prices=Prices(retail=1000))
    payload = ProductCreate(name=" Gạo ", unit="  ", prices=Prices(retail=1000))
    assert payload.name == "Gạo"
    assert payload.unit == DEFAULT_UNIT


def test_update_tracks_explicitly_cleared_location() -> None:
    payload = ProductUpdate.model_validate({"location": ""})
    assert payload.model_dump(exclude_unset=True) == {"location": None}


def test_search_page_empty() -> None:
    page = SearchPage.empty(page=3)
    assert page.products == []
    assert page.total == 0
    assert page.page == 3
    assert page.has_more is False


def test_bulk_upsert_result_synced() -> None:
    result = BulkUpsertResult.model_validate({"insertedCount": 2, "modifiedCount": 3})
    assert result.synced == 5


def test_search_state_is_frozen() -> None:
    state = SearchState()
    with pytest.raises(ValidationError):
        state.query = "x"  # type: ignore[misc]
